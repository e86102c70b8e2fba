"""
Publish dispatcher: one post and its account in, one ``StatusUpdate`` out.

``PublishDispatcher.dispatch`` never raises.  Every outcome, including
configuration problems for a single post, bad credentials, adapter
timeouts and unexpected exceptions, becomes a ``FAILED`` status update
carrying a readable message.  The dispatcher does not write to the store;
the scheduler applies the returned update.

The access token is decrypted immediately before the adapter call and
exists in plaintext only inside :meth:`PublishDispatcher.dispatch`.
"""

import asyncio
import logging
from typing import Dict, Mapping

from src.exceptions import ConfigurationError, CredentialError, PublishError
from src.platforms.base import Credential, PlatformAdapter
from src.scheduling.models import (
    AccountUpdate,
    ConnectedAccount,
    Platform,
    PostStatus,
    ScheduledPost,
    StatusUpdate,
)
from src.utils import utc_now
from src.vault import TokenVault

logger = logging.getLogger(__name__)


class PublishDispatcher:
    """Route a claimed post to its platform adapter.

    Args:
        adapters: Registry built by :func:`src.platforms.build_registry`.
        vault: Token vault used to decrypt the account's access token.
        timeout_seconds: Upper bound on one adapter call.
    """

    def __init__(
        self,
        adapters: Mapping[Platform, PlatformAdapter],
        vault: TokenVault,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.adapters: Dict[Platform, PlatformAdapter] = dict(adapters)
        self.vault = vault
        self.timeout_seconds = timeout_seconds

    async def dispatch(
        self, post: ScheduledPost, account: ConnectedAccount
    ) -> StatusUpdate:
        """Publish *post* with *account*'s credential.

        Returns:
            ``POSTED`` update with ``metadata.platform_id`` on success,
            otherwise a ``FAILED`` update.  Never raises.
        """
        try:
            return await self._dispatch(post, account)
        except PublishError as exc:
            logger.warning(
                "[DISPATCH] Post %s failed on %s: %s", post.id, post.platform, exc
            )
            return StatusUpdate.failed(post.id, str(exc))
        except Exception as exc:
            logger.exception("[DISPATCH] Unexpected error publishing post %s", post.id)
            return StatusUpdate.failed(post.id, f"Unexpected error: {exc}")

    async def _dispatch(
        self, post: ScheduledPost, account: ConnectedAccount
    ) -> StatusUpdate:
        try:
            platform = Platform.from_value(post.platform)
        except ConfigurationError:
            return self._unsupported(post)

        adapter = self.adapters.get(platform)
        if adapter is None:
            return self._unsupported(post)

        try:
            credential = self._resolve_credential(account)
        except CredentialError as exc:
            logger.error("[DISPATCH] Post %s: %s", post.id, exc)
            return StatusUpdate.failed(post.id, str(exc))

        if account.is_token_expired:
            logger.warning(
                "[DISPATCH] Token for account %s (%s) expired at %s; attempting anyway",
                account.id, platform.value, account.token_expires_at.isoformat(),
            )

        logger.info("[DISPATCH] Publishing post %s to %s", post.id, platform.value)

        try:
            result = await asyncio.wait_for(
                adapter.publish(post.content, credential),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            message = (
                f"Publishing to {platform.value} timed out after "
                f"{self.timeout_seconds:g}s"
            )
            logger.error("[DISPATCH] Post %s: %s", post.id, message)
            return StatusUpdate.failed(post.id, message)

        metadata: Dict[str, str] = {"platform_id": result.platform_post_id}
        if result.tier_hint:
            metadata["tier"] = result.tier_hint
        if result.warning:
            metadata["warning"] = result.warning

        account_update = None
        if result.tier_hint and account.metadata.get("tier") != result.tier_hint:
            account_update = AccountUpdate(
                account_id=account.id, metadata={"tier": result.tier_hint}
            )

        logger.info(
            "[DISPATCH] Post %s published to %s (platform_id=%s)",
            post.id, platform.value, result.platform_post_id,
        )
        return StatusUpdate(
            post_id=post.id,
            status=PostStatus.POSTED,
            posted_at=utc_now(),
            error_message=result.warning,
            metadata=metadata,
            account_update=account_update,
        )

    def _resolve_credential(self, account: ConnectedAccount) -> Credential:
        """Decrypt the account's access token into a one-call credential.

        Raises:
            CredentialError: If the token is missing or could not be
                decrypted.
        """
        token = self.vault.decrypt(account.access_token)
        if not token:
            raise CredentialError(
                f"No access token stored for {account.platform} account"
            )
        if TokenVault.looks_encrypted(token):
            raise CredentialError(
                f"Could not decrypt access token for {account.platform} account; "
                "reconnect the account"
            )
        return Credential(
            token=token,
            platform_user_id=account.platform_user_id,
            metadata=dict(account.metadata),
        )

    def _unsupported(self, post: ScheduledPost) -> StatusUpdate:
        message = f"Platform {post.platform} not supported"
        logger.error("[DISPATCH] Post %s: %s", post.id, message)
        return StatusUpdate.failed(post.id, message)


__all__ = ["PublishDispatcher"]
