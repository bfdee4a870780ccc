"""
Unit tests for the per-user settings upserts.
"""

from app.models.db.followups import FollowupSettings
from app.models.db.transparency import AgentSetting
from app.repositories.followup_repository import FollowupSettingsRepository
from app.repositories.transparency_repository import TransparencyRepository
from tests.factories import scalars_result


class TestFollowupSettingsUpsert:
    async def test_creates_row_on_first_save(self, mock_async_session, user_id):
        mock_async_session.execute.return_value = scalars_result([])

        settings = await FollowupSettingsRepository(mock_async_session).upsert(user_id, default_followup_days=5)

        assert settings.user_id == user_id
        assert settings.default_followup_days == 5
        mock_async_session.add.assert_called_once_with(settings)
        mock_async_session.commit.assert_awaited_once()
        mock_async_session.refresh.assert_awaited_once_with(settings)

    async def test_updates_existing_row(self, mock_async_session, user_id):
        existing = FollowupSettings(user_id=user_id, default_followup_days=3, default_priority="medium")
        mock_async_session.execute.return_value = scalars_result([existing])

        settings = await FollowupSettingsRepository(mock_async_session).upsert(user_id, default_priority="high")

        assert settings is existing
        assert settings.default_priority == "high"
        assert settings.default_followup_days == 3
        mock_async_session.add.assert_not_called()
        mock_async_session.commit.assert_awaited_once()


class TestAgentSettingUpsert:
    async def test_creates_setting_with_owner_fields(self, mock_async_session, org_context, user_id, org_id):
        mock_async_session.execute.return_value = scalars_result([])

        setting = await TransparencyRepository(mock_async_session, org_context).upsert_setting(
            "followup_ai", "tone", "friendly"
        )

        assert setting.agent_id == "followup_ai"
        assert setting.setting_key == "tone"
        assert setting.setting_value == "friendly"
        assert (setting.user_id, setting.organization_id) == (user_id, org_id)
        mock_async_session.add.assert_called_once_with(setting)
        mock_async_session.refresh.assert_awaited_once_with(setting)

    async def test_overwrites_existing_value(self, mock_async_session, personal_context):
        existing = AgentSetting(agent_id="followup_ai", setting_key="tone", setting_value="formal")
        mock_async_session.execute.return_value = scalars_result([existing])

        setting = await TransparencyRepository(mock_async_session, personal_context).upsert_setting(
            "followup_ai", "tone", "friendly"
        )

        assert setting is existing
        assert setting.setting_value == "friendly"
        assert setting.updated_at is not None
        mock_async_session.add.assert_not_called()
        mock_async_session.commit.assert_awaited_once()
