import asyncio
import inspect
import typing


EventType = typing.Type[typing.Any]
CallbackType = typing.Callable[[typing.Any], typing.Any]


class EventEmitter:

	"""
	Dispatches typed event objects to the callbacks registered for their class.

	Sync callbacks run immediately in registration order; async callbacks are
	only allowed through :meth:`emit_async`.
	"""

	def __init__ (self) -> None:

		"""
		Initialize an empty event registry.
		"""

		self._listeners: typing.Dict[EventType, typing.List[CallbackType]] = {}


	def on (self, event_type: EventType, callback: CallbackType) -> None:

		"""
		Register a callback for an event class.
		"""

		self._listeners.setdefault(event_type, []).append(callback)


	def off (self, event_type: EventType, callback: CallbackType) -> None:

		"""
		Unregister a previously registered callback.

		Raises ``ValueError`` if the callback is not registered for the event class.
		"""

		if event_type not in self._listeners or callback not in self._listeners[event_type]:
			raise ValueError(f"Callback not registered for event {event_type.__name__}")

		self._listeners[event_type].remove(callback)


	def clear (self) -> None:

		"""Drop every registered callback."""

		self._listeners = {}


	def has_listeners (self, event_type: EventType) -> bool:

		return bool(self._listeners.get(event_type))


	def emit (self, event: typing.Any) -> None:

		"""
		Deliver an event to its sync listeners immediately.
		"""

		# Copy so a callback may unsubscribe itself while being called.
		for callback in list(self._listeners.get(type(event), [])):

			if inspect.iscoroutinefunction(callback):
				raise ValueError(f"Async callback registered for {type(event).__name__}; use emit_async")

			callback(event)


	async def emit_async (self, event: typing.Any) -> None:

		"""
		Deliver an event and await any async listeners.
		"""

		tasks: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(type(event), [])):

			if inspect.iscoroutinefunction(callback):
				tasks.append(callback(event))

			else:
				callback(event)

		if tasks:
			await asyncio.gather(*tasks)
