from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    ContactViewSet, RegisterAPIView, PasswordResetRequestAPIView,
    ResetPasswordAPIView, verify_contact,
)


router = DefaultRouter()
router.register(r'contacts', ContactViewSet, basename='contact')


urlpatterns = [
    path('api/', include(router.urls)),
    path("api/auth/register/", RegisterAPIView.as_view(), name="auth_register"),
    path("api/auth/password-reset/", PasswordResetRequestAPIView.as_view(), name="password_reset_request"),
    path("reset-password", ResetPasswordAPIView.as_view(), name="reset_password"),
    path("verify", verify_contact, name="contact_verify"),
]
