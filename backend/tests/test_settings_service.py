import unittest

from bikeshop import create_app
from bikeshop.extensions import db
from bikeshop.models import BusinessSettings, CapabilityOverride, SecurityEvent, User, SessionToken, PasswordResetToken
from bikeshop.permissions import Capability
from bikeshop.services import auth_service, permission_service, settings_service
from bikeshop.services.permission_service import CapabilityDeniedError
from bikeshop.services.settings_service import SettingsError


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "BCRYPT_ROUNDS": 4,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(SecurityEvent).delete()
        db.session.query(CapabilityOverride).delete()
        db.session.query(BusinessSettings).delete()
        db.session.query(PasswordResetToken).delete()
        db.session.query(SessionToken).delete()
        db.session.query(User).delete()
        db.session.commit()

        self.admin = auth_service.sign_up("owner@bikeshop.test", "Password123", "Olive Owner")
        auth_service.set_role(self.admin.id, "admin")
        self.staff = auth_service.sign_up("sam@bikeshop.test", "Password123", "Sam Staff")

    def test_defaults_created_on_first_read(self):
        settings = settings_service.get_settings()
        self.assertEqual(settings.features_json, {"sales": True, "jobs": True})
        self.assertTrue(settings.opening_hours_json["sunday"]["closed"])
        self.assertEqual(settings.opening_hours_json["monday"]["open"], "09:00")
        self.assertEqual(settings.theme_json["primary"], settings_service.DEFAULT_PRIMARY_COLOR)
        self.assertEqual(db.session.query(BusinessSettings).count(), 1)

    def test_feature_toggle(self):
        settings_service.update_business_info(patch={"features": {"jobs": False}}, user_id=self.admin.id)
        self.assertFalse(settings_service.is_feature_enabled("jobs"))
        self.assertTrue(settings_service.is_feature_enabled("sales"))

    def test_feature_values_must_be_boolean(self):
        with self.assertRaises(SettingsError):
            settings_service.update_business_info(patch={"features": {"jobs": "no"}}, user_id=self.admin.id)

    def test_unknown_feature_rejected(self):
        with self.assertRaises(SettingsError):
            settings_service.is_feature_enabled("rentals")

    def test_business_info_requires_admin(self):
        with self.assertRaises(CapabilityDeniedError):
            settings_service.update_business_info(patch={"name": "Spokes"}, user_id=self.staff.id)
        denial = db.session.query(SecurityEvent).filter_by(event_type="CAPABILITY_DENIED").first()
        self.assertIsNotNone(denial)
        self.assertEqual(denial.action, Capability.EDIT_BUSINESS_INFO.value)

    def test_business_name_cannot_be_blank(self):
        with self.assertRaises(SettingsError):
            settings_service.update_business_info(patch={"name": "  "}, user_id=self.admin.id)

    def test_staff_can_edit_opening_hours(self):
        settings = settings_service.update_opening_hours(
            hours={"saturday": {"open": "10:00", "close": "14:00"}},
            user_id=self.staff.id,
        )
        self.assertEqual(settings.opening_hours_json["saturday"]["open"], "10:00")
        self.assertEqual(settings.opening_hours_json["monday"]["close"], "17:00")
        self.assertEqual(settings.updated_by_user_id, self.staff.id)

    def test_closing_before_opening_rejected(self):
        with self.assertRaises(SettingsError):
            settings_service.update_opening_hours(
                hours={"monday": {"open": "17:00", "close": "09:00"}},
                user_id=self.staff.id,
            )

    def test_bad_time_format_rejected(self):
        with self.assertRaises(SettingsError):
            settings_service.update_opening_hours(hours={"monday": {"open": "9am"}}, user_id=self.staff.id)

    def test_bike_options_deduplicated(self):
        settings = settings_service.update_bike_options(
            options={"brands": ["Trek", " Trek", "Giant", ""]},
            user_id=self.staff.id,
        )
        self.assertEqual(settings.bike_options_json["brands"], ["Trek", "Giant"])

    def test_theme_requires_grant_for_staff(self):
        with self.assertRaises(CapabilityDeniedError):
            settings_service.update_theme(theme={"primary": "#FF0000"}, user_id=self.staff.id)

        permission_service.set_capability_override(
            user_id=self.staff.id,
            capability=Capability.EDIT_THEME.value,
            override_type="GRANT",
            granted_by_user_id=self.admin.id,
        )
        settings = settings_service.update_theme(theme={"primary": "#FF0000"}, user_id=self.staff.id)
        self.assertEqual(settings.theme_json["primary"], "#ff0000")

    def test_theme_colour_validated(self):
        with self.assertRaises(SettingsError):
            settings_service.update_theme(theme={"primary": "blue"}, user_id=self.admin.id)


class CapabilityOverrideTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "BCRYPT_ROUNDS": 4,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(SecurityEvent).delete()
        db.session.query(CapabilityOverride).delete()
        db.session.query(PasswordResetToken).delete()
        db.session.query(SessionToken).delete()
        db.session.query(User).delete()
        db.session.commit()
        self.admin = auth_service.sign_up("owner@bikeshop.test", "Password123", "Olive Owner")
        auth_service.set_role(self.admin.id, "admin")
        self.staff = auth_service.sign_up("sam@bikeshop.test", "Password123", "Sam Staff")

    def test_deny_removes_role_default(self):
        self.assertTrue(permission_service.user_has_capability(self.staff.id, Capability.RECORD_SALES))
        permission_service.set_capability_override(
            user_id=self.staff.id,
            capability="RECORD_SALES",
            override_type="deny",
            granted_by_user_id=self.admin.id,
        )
        self.assertFalse(permission_service.user_has_capability(self.staff.id, Capability.RECORD_SALES))

    def test_clear_restores_role_default(self):
        permission_service.set_capability_override(
            user_id=self.staff.id,
            capability="RECORD_SALES",
            override_type="DENY",
            granted_by_user_id=self.admin.id,
        )
        self.assertTrue(permission_service.clear_capability_override(user_id=self.staff.id, capability="RECORD_SALES"))
        self.assertTrue(permission_service.user_has_capability(self.staff.id, Capability.RECORD_SALES))
        self.assertFalse(permission_service.clear_capability_override(user_id=self.staff.id, capability="RECORD_SALES"))

    def test_latest_override_wins(self):
        for override_type in ("GRANT", "DENY"):
            permission_service.set_capability_override(
                user_id=self.staff.id,
                capability="EDIT_THEME",
                override_type=override_type,
                granted_by_user_id=self.admin.id,
            )
        self.assertFalse(permission_service.user_has_capability(self.staff.id, Capability.EDIT_THEME))
        self.assertEqual(len(permission_service.list_capability_overrides(self.staff.id)), 1)

    def test_staff_management_is_protected(self):
        with self.assertRaises(ValueError):
            permission_service.set_capability_override(
                user_id=self.staff.id,
                capability="MANAGE_STAFF",
                override_type="GRANT",
                granted_by_user_id=self.admin.id,
            )

    def test_admin_holds_every_capability(self):
        caps = permission_service.get_user_capabilities(self.admin.id)
        self.assertEqual(caps, set(Capability))


if __name__ == "__main__":
    unittest.main()
