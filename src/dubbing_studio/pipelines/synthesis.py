"""Synthesis stage: per-speaker text-to-speech and assembly of the dubbed track."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime

from ..exceptions import NoAudioGenerated, NoUsableOutput, ValidationError
from ..exceptions import ProviderError
from ..models import SynthesisItem, SynthesisUnit, TranscriptSegment
from ..providers.base import DeliverableStore, SpeechSynthesisProvider
from ..storage.repository import ProjectStore
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

__all__ = [
    "AudioClip",
    "SynthesisOutcome",
    "SynthesisStage",
    "assemble_audio",
    "build_synthesis_units",
    "deliverable_key",
]

DELIVERABLE_CONTENT_TYPE = "audio/mpeg"


@dataclass(slots=True)
class AudioClip:
    """Synthesized audio for one segment, tagged with its place on the timeline."""

    segment_id: str
    start_time: float
    order: int
    audio: bytes


@dataclass(slots=True)
class SynthesisOutcome:
    dubbed_audio_url: str
    clip_count: int
    segment_count: int
    failed_count: int

    @property
    def partial(self) -> bool:
        return self.failed_count > 0


def build_synthesis_units(
    segments: Sequence[TranscriptSegment],
    voice_pool: Sequence[str],
) -> list[SynthesisUnit]:
    """Group chronologically ordered segments by speaker and assign voices.

    Voices are handed out round-robin in order of each speaker's first segment, so
    two speakers share a voice once the pool is exhausted. Segments with neither
    translated nor original text are skipped; segments without a speaker share a
    unit of their own.
    """
    if not voice_pool:
        raise ValueError("voice_pool must contain at least one voice id.")

    units: dict[str | None, SynthesisUnit] = {}
    for order, segment in enumerate(segments):
        text = segment.display_text.strip()
        if not text:
            continue
        unit = units.get(segment.speaker_id)
        if unit is None:
            unit = SynthesisUnit(
                speaker_id=segment.speaker_id,
                voice_id=voice_pool[len(units) % len(voice_pool)],
            )
            units[segment.speaker_id] = unit
        unit.items.append(
            SynthesisItem(
                segment_id=segment.id,
                text=text,
                start_time=segment.start_time,
                order=order,
            )
        )
    return list(units.values())


def assemble_audio(clips: Iterable[AudioClip]) -> bytes:
    """Concatenate clips in timeline order, whatever order they were produced in."""
    ordered = sorted(clips, key=lambda clip: (clip.start_time, clip.order))
    return b"".join(clip.audio for clip in ordered)


def deliverable_key(project_id: str, *, now: datetime | None = None) -> str:
    timestamp = now or datetime.now(UTC)
    return f"{project_id}/dubbed_audio_{int(timestamp.timestamp() * 1000)}.mp3"


class SynthesisStage:
    """Renders every segment with its speaker's voice and uploads the combined track."""

    def __init__(
        self,
        store: ProjectStore,
        provider: SpeechSynthesisProvider,
        deliverables: DeliverableStore,
        *,
        voice_pool: Sequence[str],
        max_workers: int = 4,
    ) -> None:
        if not voice_pool:
            raise ValueError("voice_pool must contain at least one voice id.")
        self.store = store
        self.provider = provider
        self.deliverables = deliverables
        self.voice_pool = list(voice_pool)
        self.max_workers = max(1, max_workers)

    def run(self, project_id: str, target_language: str) -> SynthesisOutcome:
        if not target_language:
            raise ValidationError("A target language is required for synthesis.")

        segments = self.store.list_segments(project_id)
        if not segments:
            raise ValidationError(f"No transcript segments found for project {project_id}.")

        units = build_synthesis_units(segments, self.voice_pool)
        item_count = sum(len(unit.items) for unit in units)
        if not item_count:
            raise NoUsableOutput(f"Project {project_id} has no text to synthesize.")

        LOGGER.info(
            "Synthesis: rendering %d segments across %d speakers for project %s",
            item_count,
            len(units),
            project_id,
        )
        clips = self._render(units, target_language)
        if not clips:
            raise NoAudioGenerated(f"No audio segments were generated for project {project_id}.")

        combined = assemble_audio(clips)
        url = self.deliverables.put(
            combined, DELIVERABLE_CONTENT_TYPE, key=deliverable_key(project_id)
        )
        outcome = SynthesisOutcome(
            dubbed_audio_url=url,
            clip_count=len(clips),
            segment_count=item_count,
            failed_count=item_count - len(clips),
        )
        if outcome.partial:
            LOGGER.warning(
                "Synthesis: %d of %d segments failed for project %s",
                outcome.failed_count,
                item_count,
                project_id,
            )
        LOGGER.info("Synthesis: uploaded %d clips to %s", len(clips), url)
        return outcome

    def _render(self, units: Sequence[SynthesisUnit], target_language: str) -> list[AudioClip]:
        work = [(unit.voice_id, item) for unit in units for item in unit.items]
        for unit in units:
            LOGGER.debug(
                "Synthesis: speaker %s uses voice %s for %d segments",
                unit.speaker_id,
                unit.voice_id,
                len(unit.items),
            )

        clips: list[AudioClip] = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(work))) as pool:
            futures = [
                pool.submit(self._render_one, voice_id, item, target_language)
                for voice_id, item in work
            ]
            for future in futures:
                clip = future.result()
                if clip is not None:
                    clips.append(clip)
        return clips

    def _render_one(
        self,
        voice_id: str,
        item: SynthesisItem,
        target_language: str,
    ) -> AudioClip | None:
        try:
            audio = self.provider.synthesize(item.text, voice_id, target_language)
        except ProviderError as exc:
            LOGGER.error("Synthesis: segment %s failed: %s", item.segment_id, exc)
            return None
        if not audio:
            LOGGER.error("Synthesis: segment %s produced no audio", item.segment_id)
            return None
        return AudioClip(
            segment_id=item.segment_id,
            start_time=item.start_time,
            order=item.order,
            audio=audio,
        )
