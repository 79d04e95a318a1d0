# services/notifications.py
"""Outbound notification queue: transitions enqueue, a worker delivers best effort."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar, Optional, Protocol

from aiogram import Bot
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from hackhub.config import Settings
from hackhub.db.enums import NotificationKind
from hackhub.db.schemas.user import UserRead
from hackhub.i18n import Localizer
from hackhub.utils.clock import utcnow

logger = logging.getLogger(__name__)


@dataclass
class Notification:
	kind: NotificationKind
	recipient: UserRead
	context: dict[str, Any] = field(default_factory=dict)
	created_at: datetime = field(default_factory=utcnow)


class NotificationSender(Protocol):
	async def send(self, kind: NotificationKind, recipient: UserRead, context: dict[str, Any]) -> bool: ...


class TelegramSender:
	"""Delivers notifications as Telegram messages rendered from locale templates."""

	def __init__(self, bot: Bot) -> None:
		self._bot = bot
		self._localizers: dict[str, Localizer] = {}

	def _localizer(self, user: UserRead) -> Localizer:
		lang = user.preferred_language or Settings().default_language
		if lang not in self._localizers:
			self._localizers[lang] = Localizer(lang)
		return self._localizers[lang]

	def render(self, kind: NotificationKind, recipient: UserRead, context: dict[str, Any]) -> str:
		lz = self._localizer(recipient)
		lines = [lz.get(f"notifications.{kind.value}.title", **context)]
		lines.append(lz.get(f"notifications.{kind.value}.body", **context))
		return "\n".join(lines)

	async def send(self, kind: NotificationKind, recipient: UserRead, context: dict[str, Any]) -> bool:
		chat_id = recipient.tg_id
		if not isinstance(chat_id, int):
			logger.debug("User %s has no tg_id; skipping %s notification", recipient.id, kind)
			return False

		text = self.render(kind, recipient, context)
		try:
			await self._bot.send_message(chat_id=chat_id, text=text)
		except (TelegramForbiddenError, TelegramBadRequest):
			logger.warning("Failed to deliver %s notification to user %s", kind, recipient.id, exc_info=True)
			return False
		return True


class NotificationService:
	"""
	Singleton outbound queue.

	State transitions call :meth:`enqueue` after their transaction commits.
	Delivery happens in a background worker (:meth:`start`) or on demand
	(:meth:`flush`); a failed delivery is logged and never reaches the caller.
	"""

	_instance: ClassVar[Optional["NotificationService"]] = None

	def __new__(cls) -> "NotificationService":
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __init__(self) -> None:
		if getattr(self, "_initialized", False):
			return
		self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=Settings().notification_queue_size)
		self._sender: Optional[NotificationSender] = None
		self._worker: Optional[asyncio.Task] = None
		self._initialized = True

	def bind_sender(self, sender: Optional[NotificationSender]) -> None:
		self._sender = sender
		logger.info("Notification sender bound: %s", type(sender).__name__ if sender else None)

	def bind_bot(self, bot: Bot) -> None:
		"""Deliver through the given aiogram bot."""
		self.bind_sender(TelegramSender(bot))

	@property
	def pending(self) -> int:
		return self._queue.qsize()

	def enqueue(self, kind: NotificationKind, recipient: Optional[UserRead], **context: Any) -> bool:
		if recipient is None:
			logger.debug("Dropping %s notification without recipient", kind)
			return False
		try:
			self._queue.put_nowait(Notification(kind=kind, recipient=recipient, context=context))
		except asyncio.QueueFull:
			logger.warning("Notification queue is full; dropping %s for user %s", kind, recipient.id)
			return False
		return True

	async def deliver(self, notification: Notification) -> bool:
		sender = self._sender
		if sender is None:
			logger.debug("No notification sender bound; dropping %s", notification.kind)
			return False
		try:
			return bool(await sender.send(notification.kind, notification.recipient, notification.context))
		except Exception:
			# Notification failures never block state transitions.
			logger.exception(
				"Failed to send %s notification to user %s",
				notification.kind,
				notification.recipient.id,
			)
			return False

	async def flush(self) -> int:
		"""Deliver everything queued right now; returns the number delivered."""
		delivered = 0
		while True:
			try:
				notification = self._queue.get_nowait()
			except asyncio.QueueEmpty:
				return delivered
			try:
				if await self.deliver(notification):
					delivered += 1
			finally:
				self._queue.task_done()

	def clear(self) -> None:
		while True:
			try:
				self._queue.get_nowait()
			except asyncio.QueueEmpty:
				return
			self._queue.task_done()

	async def _run(self) -> None:
		while True:
			notification = await self._queue.get()
			try:
				await self.deliver(notification)
			finally:
				self._queue.task_done()

	def start(self) -> None:
		if self._worker is not None and not self._worker.done():
			return
		self._worker = asyncio.get_running_loop().create_task(self._run(), name="hackhub-notifications")
		logger.info("Notification worker started")

	async def stop(self) -> None:
		if self._worker is None:
			return
		await self.flush()
		self._worker.cancel()
		try:
			await self._worker
		except asyncio.CancelledError:
			pass
		self._worker = None
		logger.info("Notification worker stopped")


notifier = NotificationService()
