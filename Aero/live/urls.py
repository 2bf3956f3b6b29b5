from django.urls import path
from . import views, views_api

urlpatterns = [
    # public, token is the only credential
    path("track/<str:token>", views.track_page, name="track_page"),
    path("api/public/track/<str:token>", views.track_snapshot, name="track_snapshot"),
    path("api/public/track/<str:token>/stream", views.track_stream, name="track_stream"),

    # sharer (JWT)
    path("api/live/sessions/", views_api.SessionStartAPIView.as_view(), name="live_session_start"),
    path("api/live/sessions/active/", views_api.ActiveSessionAPIView.as_view(), name="live_session_active"),
    path("api/live/sessions/<str:session_id>/position/", views_api.SessionPositionAPIView.as_view(), name="live_session_position"),
    path("api/live/sessions/<str:session_id>/stop/", views_api.SessionStopAPIView.as_view(), name="live_session_stop"),

    path("api/functions/send-sos-notification", views_api.SendSOSNotificationAPIView.as_view(), name="send_sos_notification"),
]
