import importlib
import os
from unittest.mock import patch

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase

import KidsLearn.settings


class SettingsTestCase(SimpleTestCase):
    """Reloads the settings module under a patched environment; Django's own settings are untouched."""

    def setUp(self):
        self.addCleanup(importlib.reload, KidsLearn.settings)

    def reload_settings(self, **environ):
        with patch("dotenv.load_dotenv"), patch.dict(os.environ, environ):
            os.environ.pop("DJANGO_SECRET_KEY", None)
            return importlib.reload(KidsLearn.settings)

    def test_missing_secret_key_outside_development(self):
        with self.assertRaises(ImproperlyConfigured):
            self.reload_settings(DJANGO_ENV="PRODUCTION")

    def test_missing_secret_key_in_development_uses_local_key(self):
        settings = self.reload_settings(DJANGO_ENV="DEVELOPMENT")
        self.assertTrue(settings.SECRET_KEY.startswith("django-insecure-"))
