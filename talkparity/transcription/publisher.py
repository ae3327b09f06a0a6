"""Request telemetry publisher for pub/sub event delivery."""

import itertools
import logging
from typing import Callable, Optional
from pubsub import pub
from ..models.events import RequestEvent

logger = logging.getLogger(__name__)

REQUEST_TOPIC = "diarization.requests"

_publisher_ids = itertools.count()


class RequestEventPublisher:
    """Publishes request lifecycle events using pubsub.pub, with a single observer.

    Each publisher sends on its own subtopic of ``REQUEST_TOPIC`` so events
    from one service never reach another service's observer.
    """

    def __init__(self, topic: str = REQUEST_TOPIC):
        """Initialize request event publisher.

        Args:
            topic: Parent pub/sub topic; this publisher uses a private subtopic of it
        """
        self.topic = f"{topic}.publisher_{next(_publisher_ids)}"
        self._observer: Optional[Callable[[RequestEvent], None]] = None
        logger.info(f"RequestEventPublisher initialized with topic: {self.topic}")

    def register_observer(self, listener: Callable[[RequestEvent], None]) -> None:
        """Route events to ``listener``, replacing any previous observer."""
        if self._observer is None:
            pub.subscribe(self._dispatch, self.topic)
        self._observer = listener
        logger.debug(f"Registered request observer on {self.topic}")

    def unregister_observer(self) -> None:
        """Remove the registered observer, if any."""
        if self._observer is None:
            return
        pub.unsubscribe(self._dispatch, self.topic)
        self._observer = None

    def publish_request_event(self, event: RequestEvent) -> None:
        """Publish a request event to the pub/sub topic.

        Args:
            event: RequestEvent to publish
        """
        if self._observer is None:
            return
        pub.sendMessage(self.topic, event=event)

    def get_callback(self) -> Callable[[RequestEvent], None]:
        """Get callback function for TranscriptionClient to use."""
        return self.publish_request_event

    def _dispatch(self, event: RequestEvent) -> None:
        observer = self._observer
        if observer is None:
            return
        try:
            observer(event)
        except Exception as e:
            logger.warning(f"Request observer raised while handling {event.method} {event.url}: {e}")
