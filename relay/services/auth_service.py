from relay.config import Settings
from relay.schemas.auth import AuthContext, ConversationAuth, FacebookAuth, SlackAuth


def build_auth_context(settings: Settings) -> AuthContext:
    """Snapshot the configured credentials into an immutable context."""
    return AuthContext(
        namespace=settings.pipeline_namespace,
        facebook=FacebookAuth(
            app_secret=settings.facebook_app_secret,
            verification_token=settings.facebook_verification_token,
            page_access_token=settings.facebook_page_access_token,
        ),
        slack=SlackAuth(
            verification_token=settings.slack_verification_token,
            bot_access_token=settings.slack_bot_access_token,
        ),
        conversation=ConversationAuth(
            workspace_id=settings.conversation_workspace_id,
            username=settings.conversation_username,
            password=settings.conversation_password,
        ),
    )
