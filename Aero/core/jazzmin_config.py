JAZZMIN_SETTINGS = {
    "site_title": "AeroAbantu Admin",
    "site_header": "AeroAbantu",
    "site_brand": "AeroAbantu",
    "welcome_sign": "Safety operations",
    "copyright": "AeroAbantu",
    "search_model": ["auth.User", "aero.Contact"],
    "topmenu_links": [
        {"name": "Home", "url": "admin:index", "permissions": ["auth.view_user"]},
        {"name": "API docs", "url": "swagger-ui", "new_window": True},
    ],
    "order_with_respect_to": ["aero", "live", "auth"],
    "icons": {
        "auth.User": "fas fa-user",
        "auth.Group": "fas fa-users",
        "aero.Contact": "fas fa-address-book",
        "live.LiveLocation": "fas fa-map-marker-alt",
        "live.LocationShare": "fas fa-link",
    },
    "show_ui_builder": False,
}

JAZZMIN_UI_TWEAKS = {
    "navbar": "navbar-dark",
    "sidebar": "sidebar-dark-danger",
    "brand_colour": "navbar-danger",
    "theme": "default",
}
