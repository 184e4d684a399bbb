"""Translation stage: rewrite every transcript segment into the target language."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from ..exceptions import NoUsableOutput, ProviderError, ValidationError
from ..models import TranscriptSegment
from ..providers.base import TranslationProvider
from ..storage.repository import ProjectStore
from ..utils.logging import get_logger

LOGGER = get_logger(__name__)

__all__ = ["TranslationOutcome", "TranslationStage"]


@dataclass(slots=True)
class TranslationOutcome:
    translated_count: int
    total_count: int
    attempted_count: int
    failed_count: int

    @property
    def partial(self) -> bool:
        """True when some segments are still without a translation."""
        return self.translated_count < self.total_count


class TranslationStage:
    """Translates segments independently and stores the successful results in one batch.

    Only segments whose translation is still missing are attempted, so re-running
    the stage fills gaps without touching translated rows. A provider error on one
    segment leaves that segment untranslated; configuration errors abort the stage.
    """

    def __init__(
        self,
        store: ProjectStore,
        provider: TranslationProvider,
        *,
        max_workers: int = 4,
    ) -> None:
        self.store = store
        self.provider = provider
        self.max_workers = max(1, max_workers)

    def run(self, project_id: str, target_language: str) -> TranslationOutcome:
        if not target_language:
            raise ValidationError("A target language is required for translation.")

        segments = self.store.list_segments(project_id)
        if not segments:
            raise ValidationError(f"No transcript segments found for project {project_id}.")

        with_text = [segment for segment in segments if segment.original_text.strip()]
        if not with_text:
            raise NoUsableOutput(f"Project {project_id} has no transcript text to translate.")

        pending = [segment for segment in with_text if segment.translated_text is None]
        already_translated = sum(1 for segment in segments if segment.translated_text is not None)
        LOGGER.info(
            "Translation: %d of %d segments need translation for project %s",
            len(pending),
            len(segments),
            project_id,
        )

        translations = self._translate_all(pending, target_language)
        saved = self.store.save_translations(translations)

        outcome = TranslationOutcome(
            translated_count=already_translated + saved,
            total_count=len(segments),
            attempted_count=len(pending),
            failed_count=len(pending) - len(translations),
        )
        if outcome.partial:
            LOGGER.warning(
                "Translation: project %s translated %d of %d segments",
                project_id,
                outcome.translated_count,
                outcome.total_count,
            )
        else:
            LOGGER.info("Translation: all %d segments translated", outcome.total_count)
        return outcome

    def _translate_all(
        self,
        segments: list[TranscriptSegment],
        target_language: str,
    ) -> dict[str, str]:
        if not segments:
            return {}

        translations: dict[str, str] = {}
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(segments))) as pool:
            futures = {
                segment.id: pool.submit(self._translate_one, segment, target_language)
                for segment in segments
            }
            for segment_id, future in futures.items():
                translated = future.result()
                if translated:
                    translations[segment_id] = translated
        return translations

    def _translate_one(self, segment: TranscriptSegment, target_language: str) -> str | None:
        try:
            translated = self.provider.translate(segment.original_text, target_language)
        except ProviderError as exc:
            LOGGER.error("Translation: segment %s failed: %s", segment.id, exc)
            return None
        translated = translated.strip() if translated else ""
        if not translated:
            LOGGER.error("Translation: segment %s came back empty", segment.id)
            return None
        return translated
