"""Application bootstrap and lifecycle management."""

from typing import Protocol

from .auth import GoogleOAuthClient, IGoogleOAuthClient, TokenSigner
from .config import Settings
from .conversations import ConversationService, IConversationService
from .logging_config import get_logger
from .media import CloudinaryMediaStore, IMediaStore
from .realtime import Broadcaster, SocketGateway
from .storage import IStorage, Storage
from .users import IUserService, UserService

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    @property
    def settings(self) -> Settings:
        ...

    @property
    def tokens(self) -> TokenSigner:
        ...

    @property
    def users(self) -> IUserService:
        """User accounts and sessions."""
        ...

    @property
    def conversations(self) -> IConversationService:
        """Conversations, messages and groups."""
        ...

    @property
    def gateway(self) -> SocketGateway:
        ...


class Application:
    """Main application bootstrap.

    Media store and Google client may be injected; otherwise they are built
    from ``settings``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        media_store: IMediaStore | None = None,
        google: IGoogleOAuthClient | None = None,
    ):
        self._settings = settings or Settings.from_env()
        self._injected_media = media_store
        self._injected_google = google

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._media: IMediaStore | None = None
        self._broadcaster: Broadcaster | None = None
        self._tokens: TokenSigner | None = None
        self._users: UserService | None = None
        self._conversations: ConversationService | None = None
        self._gateway: SocketGateway | None = None

    def _build_media_store(self) -> IMediaStore:
        if self._injected_media is not None:
            return self._injected_media
        settings = self._settings
        return CloudinaryMediaStore(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )

    def _build_google_client(self) -> IGoogleOAuthClient | None:
        if self._injected_google is not None:
            return self._injected_google
        settings = self._settings
        if not settings.google_client_id or not settings.google_client_secret:
            logger.info("Google login disabled")
            return None
        return GoogleOAuthClient(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
        )

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._settings.database_url)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. External collaborators
        self._media = self._build_media_store()
        self._tokens = TokenSigner(
            self._settings.jwt_secret, self._settings.token_ttl_seconds
        )

        # 3. Broadcaster (no dependencies)
        self._broadcaster = Broadcaster()

        # 4. Services (depend on Storage, media store, Broadcaster)
        self._users = UserService(
            storage=self._storage,
            media_store=self._media,
            tokens=self._tokens,
            google=self._build_google_client(),
        )
        self._conversations = ConversationService(
            storage=self._storage,
            media_store=self._media,
            broadcaster=self._broadcaster,
        )

        # 5. Gateway (depends on Broadcaster + ConversationService)
        self._gateway = SocketGateway(
            self._broadcaster, self._conversations.is_participant
        )
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        self._gateway = None
        self._conversations = None
        self._users = None
        self._broadcaster = None
        if self._storage:
            await self._storage.close()
            self._storage = None
            logger.info("Storage closed")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def broadcaster(self) -> Broadcaster:
        """Get broadcaster instance."""
        if not self._broadcaster:
            raise RuntimeError("Application not started")
        return self._broadcaster

    @property
    def tokens(self) -> TokenSigner:
        if not self._tokens:
            raise RuntimeError("Application not started")
        return self._tokens

    @property
    def users(self) -> UserService:
        """Get user service instance."""
        if not self._users:
            raise RuntimeError("Application not started")
        return self._users

    @property
    def conversations(self) -> ConversationService:
        """Get conversation service instance."""
        if not self._conversations:
            raise RuntimeError("Application not started")
        return self._conversations

    @property
    def gateway(self) -> SocketGateway:
        if not self._gateway:
            raise RuntimeError("Application not started")
        return self._gateway
