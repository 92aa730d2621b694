"""Audio publisher module for pub/sub engine feedback."""

import logging
from pubsub import pub
from ..models.audio import EngineState, MeterReading, PlaybackProgress

logger = logging.getLogger(__name__)


class AudioPublisher:
    """Publishes capture engine feedback using pubsub.pub.

    Topics (with prefix "audio"):
        audio.meter     reading=MeterReading
        audio.playback  progress=PlaybackProgress
        audio.state     state=EngineState
    """

    def __init__(self, topic_prefix: str = "audio"):
        """Initialize audio publisher.

        Args:
            topic_prefix: Parent topic for all engine feedback topics
        """
        self.meter_topic = f"{topic_prefix}.meter"
        self.playback_topic = f"{topic_prefix}.playback"
        self.state_topic = f"{topic_prefix}.state"
        logger.info(f"AudioPublisher initialized with topic prefix: {topic_prefix}")

    def publish_meter(self, reading: MeterReading) -> None:
        pub.sendMessage(self.meter_topic, reading=reading)

    def publish_playback(self, progress: PlaybackProgress) -> None:
        pub.sendMessage(self.playback_topic, progress=progress)

    def publish_state(self, state: EngineState) -> None:
        pub.sendMessage(self.state_topic, state=state)
        logger.debug(f"Published engine state: {state.value}")
