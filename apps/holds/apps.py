from django.apps import AppConfig


class HoldsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.holds"
    label = "holds"

    def ready(self):
        from shared.application.message_bus import message_bus

        from .domain.events import HoldCreated, HoldEvent
        from .handlers import log_hold_event, schedule_hold_expiry

        message_bus.register_event_handler(HoldCreated, schedule_hold_expiry)
        message_bus.register_event_handler(HoldEvent, log_hold_event)
