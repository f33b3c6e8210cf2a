"""
Unit Tests - Logging
"""
from src.config.logging import add_service_context
from src.config.settings import Settings


class TestServiceContext:
    """Tests for add_service_context"""

    def test_events_carry_service_identity(self):
        """Test service, environment and version are stamped on events"""
        processor = add_service_context(Settings(APP_NAME="catalog-test", APP_ENV="testing"))

        event = processor(None, "info", {"event": "Product created"})

        assert event["service"] == "catalog-test"
        assert event["environment"] == "testing"
        assert event["version"] == "1.0.0"

    def test_bound_values_win(self):
        """Test values already on the event are kept"""
        processor = add_service_context(Settings(APP_ENV="testing"))

        event = processor(None, "info", {"event": "Seeded", "environment": "staging"})

        assert event["environment"] == "staging"
