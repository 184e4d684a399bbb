"""Pipeline orchestrator: sequences the dubbing stages and owns project status."""

from __future__ import annotations

import threading
import time
import uuid
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, auto
from queue import Full, Queue
from typing import Any

from ..config.load import get_section, load_config
from ..exceptions import PipelineTimeout, ValidationError
from ..models import Project, ProjectStatus, StatusEvent, utc_now
from ..providers.assemblyai import AssemblyAISettings, build_assemblyai_transcriber
from ..providers.elevenlabs_api import build_elevenlabs_synthesizer
from ..providers.openai_translate import build_openai_translator
from ..storage.db import SQLiteDatabase
from ..storage.deliverables import build_deliverable_store
from ..storage.paths import PathsConfig, build_paths
from ..storage.repository import ProjectStore
from ..utils.logging import get_logger
from .notifier import ProgressNotifier, StatusListener
from .synthesis import SynthesisStage
from .transcription import TranscriptionStage
from .translation import TranslationStage

LOGGER = get_logger(__name__)

__all__ = [
    "DubbingOrchestrator",
    "JobStatus",
    "PipelineContext",
    "PipelineJob",
    "PipelineRequest",
    "PipelineRunResult",
    "StageDefinition",
    "build_default_context",
    "build_default_orchestrator",
    "build_project_store",
]

StageRunner = Callable[["PipelineRequest"], Any]


@dataclass(slots=True)
class PipelineRequest:
    """Inputs of a single pipeline run."""

    project_id: str
    audio_url: str
    source_language: str
    target_language: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> PipelineRequest:
        """Build a request from the ``projectId``/``audioFileUrl``/... API payload."""
        return cls(
            project_id=str(payload.get("projectId") or ""),
            audio_url=str(payload.get("audioFileUrl") or ""),
            source_language=str(payload.get("sourceLanguage") or ""),
            target_language=str(payload.get("targetLanguage") or ""),
        )

    def validate(self) -> None:
        missing = [
            name
            for name, value in (
                ("project_id", self.project_id),
                ("audio_url", self.audio_url),
                ("source_language", self.source_language),
                ("target_language", self.target_language),
            )
            if not value or not str(value).strip()
        ]
        if missing:
            raise ValidationError(f"Missing required parameters: {', '.join(missing)}")


@dataclass(slots=True)
class PipelineRunResult:
    """Outcome of :meth:`DubbingOrchestrator.run_pipeline`."""

    project_id: str
    success: bool
    dubbed_audio_url: str | None = None
    error: str | None = None
    failed_stage: str | None = None
    outcomes: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"error": self.error or "Unknown error"}
        return {
            "success": True,
            "projectId": self.project_id,
            "dubbedAudioUrl": self.dubbed_audio_url,
        }


@dataclass(slots=True)
class StageDefinition:
    """A pipeline stage and the status persisted before it runs."""

    name: str
    status: ProjectStatus
    runner: StageRunner


class JobStatus(Enum):
    """Lifecycle states for a background pipeline job."""

    PENDING = auto()
    QUEUED = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(slots=True)
class PipelineJob:
    """A pipeline run queued for a worker thread."""

    job_id: str
    request: PipelineRequest
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    status: JobStatus = JobStatus.PENDING
    current_stage: str | None = None
    message: str = ""
    error: str | None = None
    result: PipelineRunResult | None = None
    _completion_event: threading.Event = field(default_factory=threading.Event, init=False)
    _listener: StatusListener | None = None

    @property
    def project_id(self) -> str:
        return self.request.project_id

    def mark(self, status: JobStatus, *, message: str | None = None) -> None:
        self.status = status
        if message is not None:
            self.message = message

    def wait(self, timeout: float | None = None) -> bool:
        return self._completion_event.wait(timeout)


@dataclass(slots=True)
class PipelineContext:
    """Runtime context shared by the orchestrator factory and the CLI."""

    config: Mapping[str, Any]
    paths: PathsConfig
    environment: str


_SENTINEL_ID = "__sentinel__"
COMPLETION_STEP = "Completion"
FINISHED_JOB_RETENTION = 100


class DubbingOrchestrator:
    """Runs transcription, translation and synthesis for one project at a time.

    A run starts by claiming the project (``uploading -> transcribing``), so at
    most one run can own a project. Each status is persisted before its stage
    runs and observers are notified only after the write. Any stage failure,
    or a failed final ``completed`` write, persists ``failed`` and ends the
    run; stages are never retried here.
    """

    def __init__(
        self,
        *,
        store: ProjectStore,
        transcription: TranscriptionStage,
        translation: TranslationStage,
        synthesis: SynthesisStage,
        notifier: ProgressNotifier | None = None,
        max_run_seconds: float | None = None,
        max_workers: int = 1,
        max_queue: int = 4,
        max_finished_jobs: int = FINISHED_JOB_RETENTION,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.notifier = notifier or ProgressNotifier()
        self.max_run_seconds = max_run_seconds
        self._clock = clock
        self._transcription = transcription
        self._translation = translation
        self._synthesis = synthesis
        self._stages = [
            StageDefinition("Transcription", ProjectStatus.TRANSCRIBING, self._run_transcription),
            StageDefinition("Translation", ProjectStatus.TRANSLATING, self._run_translation),
            StageDefinition("Synthesis", ProjectStatus.SYNTHESIZING, self._run_synthesis),
        ]

        self._jobs: dict[str, PipelineJob] = {}
        self._jobs_lock = threading.Lock()
        self._finished_jobs: deque[str] = deque()
        self._max_finished_jobs = max(0, max_finished_jobs)
        self._queue: Queue[PipelineJob] = Queue(maxsize=max_queue)
        self._max_workers = max(1, max_workers)
        self._workers: list[threading.Thread] = []
        self._workers_lock = threading.Lock()
        self._shutdown = threading.Event()

    @property
    def stages(self) -> list[StageDefinition]:
        return list(self._stages)

    # ------------------------------------------------------------------ #
    # Synchronous runs
    # ------------------------------------------------------------------ #
    def run_pipeline(
        self,
        project_id: str,
        audio_url: str,
        source_language: str,
        target_language: str,
    ) -> PipelineRunResult:
        """Run every stage for ``project_id`` and return the outcome.

        Missing inputs, unknown projects and projects that are not ``uploading``
        raise before anything is written. Stage failures are returned as an
        unsuccessful result after ``failed`` has been persisted.
        """
        request = PipelineRequest(project_id, audio_url, source_language, target_language)
        request.validate()

        project = self.store.claim_project(request.project_id)
        started = self._clock()
        LOGGER.info("Pipeline: starting project %s (%s)", project.id, project.name)
        self._publish(project, ProjectStatus.TRANSCRIBING)

        result = PipelineRunResult(project_id=request.project_id, success=False)
        step = self._stages[0].name
        try:
            for index, stage in enumerate(self._stages):
                step = stage.name
                if index:
                    self._check_budget(started, stage)
                    self._transition(request.project_id, stage.status)
                LOGGER.info("Pipeline: %s started for project %s", stage.name, request.project_id)
                result.outcomes[stage.name] = stage.runner(request)
                LOGGER.info("Pipeline: %s completed for project %s", stage.name, request.project_id)

            step = COMPLETION_STEP
            dubbed_audio_url = result.outcomes["Synthesis"].dubbed_audio_url
            self._transition(
                request.project_id,
                ProjectStatus.COMPLETED,
                dubbed_audio_url=dubbed_audio_url,
                processing_completed_at=utc_now(),
            )
        except Exception as exc:
            LOGGER.exception("Pipeline: %s failed for project %s", step, request.project_id)
            result.error = f"{step} failed: {exc}"
            result.failed_stage = step
            self._mark_failed(request.project_id, result.error)
            return result

        LOGGER.info(
            "Pipeline: project %s completed in %.1fs", request.project_id, self._clock() - started
        )
        result.success = True
        result.dubbed_audio_url = dubbed_audio_url
        return result

    def handle_request(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Run the pipeline for an API-style payload and return the response body."""
        request = PipelineRequest.from_payload(payload)
        try:
            result = self.run_pipeline(
                request.project_id,
                request.audio_url,
                request.source_language,
                request.target_language,
            )
        except ValidationError as exc:
            LOGGER.warning("Pipeline: request rejected: %s", exc)
            return {"error": str(exc)}
        return result.to_dict()

    def _run_transcription(self, request: PipelineRequest) -> Any:
        return self._transcription.run(
            request.project_id, request.audio_url, request.source_language
        )

    def _run_translation(self, request: PipelineRequest) -> Any:
        return self._translation.run(request.project_id, request.target_language)

    def _run_synthesis(self, request: PipelineRequest) -> Any:
        return self._synthesis.run(request.project_id, request.target_language)

    def _check_budget(self, started: float, stage: StageDefinition) -> None:
        if self.max_run_seconds is None:
            return
        elapsed = self._clock() - started
        if elapsed > self.max_run_seconds:
            raise PipelineTimeout(
                f"Run exceeded {self.max_run_seconds:.0f}s before {stage.name} "
                f"({elapsed:.1f}s elapsed)."
            )

    def _transition(
        self,
        project_id: str,
        status: ProjectStatus,
        *,
        detail: str | None = None,
        **fields: Any,
    ) -> Project:
        project = self.store.update_status(project_id, status, **fields)
        self._publish(project, status, detail=detail)
        return project

    def _mark_failed(self, project_id: str, message: str) -> None:
        try:
            self._transition(project_id, ProjectStatus.FAILED, detail=message)
        except Exception:
            LOGGER.exception("Pipeline: could not persist failure for project %s", project_id)

    def _publish(
        self,
        project: Project,
        status: ProjectStatus,
        *,
        detail: str | None = None,
    ) -> None:
        self.notifier.publish(
            StatusEvent(
                project_id=project.id,
                status=status,
                occurred_at=project.updated_at or utc_now(),
                detail=detail,
            )
        )

    # ------------------------------------------------------------------ #
    # Background jobs
    # ------------------------------------------------------------------ #
    def submit(
        self,
        project_id: str,
        audio_url: str,
        source_language: str,
        target_language: str,
        *,
        listener: StatusListener | None = None,
    ) -> PipelineJob:
        """Queue a pipeline run for a worker thread.

        Raises :class:`queue.Full` when the queue is at capacity. Only the most
        recent ``max_finished_jobs`` finished jobs stay visible through
        :meth:`get_job`; the returned job object can always be waited on.
        """
        request = PipelineRequest(project_id, audio_url, source_language, target_language)
        request.validate()
        if self._shutdown.is_set():
            raise RuntimeError("Orchestrator has been shut down.")

        job = PipelineJob(job_id=uuid.uuid4().hex, request=request, _listener=listener)
        job.mark(JobStatus.QUEUED, message="Waiting for available worker.")
        self._ensure_workers()

        with self._jobs_lock:
            self._jobs[job.job_id] = job
        try:
            self._queue.put_nowait(job)
        except Full:
            job.mark(JobStatus.FAILED, message="Backpressure: queue is full.")
            with self._jobs_lock:
                self._jobs.pop(job.job_id, None)
            raise
        return job

    def get_job(self, job_id: str) -> PipelineJob | None:
        with self._jobs_lock:
            return self._jobs.get(job_id)

    def list_jobs(self) -> list[PipelineJob]:
        with self._jobs_lock:
            return list(self._jobs.values())

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        job = self.get_job(job_id)
        if job is None:
            raise KeyError(f"No job found with id {job_id}")
        return job.wait(timeout)

    def shutdown(self, *, wait: bool = True) -> None:
        self._shutdown.set()
        with self._workers_lock:
            workers = list(self._workers)
        for _ in workers:
            self._queue.put(self._sentinel_job())
        if wait:
            for worker in workers:
                worker.join()

    def _ensure_workers(self) -> None:
        with self._workers_lock:
            if self._workers:
                return
            self._workers = [
                threading.Thread(
                    target=self._worker_loop, name=f"pipeline-worker-{idx}", daemon=True
                )
                for idx in range(self._max_workers)
            ]
            for worker in self._workers:
                worker.start()

    def _sentinel_job(self) -> PipelineJob:
        return PipelineJob(job_id=_SENTINEL_ID, request=PipelineRequest("", "", "", ""))

    def _worker_loop(self) -> None:
        while True:
            job = self._queue.get()
            try:
                if job.job_id == _SENTINEL_ID:
                    return
                self._execute_job(job)
            finally:
                self._queue.task_done()

    def _execute_job(self, job: PipelineJob) -> None:
        job.mark(JobStatus.RUNNING, message="Pipeline started.")

        def track(event: StatusEvent) -> None:
            job.current_stage = event.status.value
            if job._listener is not None:
                job._listener(event)

        self.notifier.add_listener(job.project_id, track)
        try:
            request = job.request
            result = self.run_pipeline(
                request.project_id,
                request.audio_url,
                request.source_language,
                request.target_language,
            )
            job.result = result
            if result.success:
                job.mark(JobStatus.COMPLETED, message="Pipeline completed successfully.")
            else:
                job.error = result.error
                job.mark(JobStatus.FAILED, message=f"Pipeline failed: {result.error}")
        except Exception as exc:
            LOGGER.exception("Pipeline: job %s was rejected", job.job_id)
            job.error = str(exc)
            job.result = PipelineRunResult(
                project_id=job.project_id, success=False, error=str(exc)
            )
            job.mark(JobStatus.FAILED, message=f"Pipeline failed: {exc}")
        finally:
            self.notifier.remove_listener(job.project_id, track)
            self._retire(job)
            job._completion_event.set()

    def _retire(self, job: PipelineJob) -> None:
        with self._jobs_lock:
            self._finished_jobs.append(job.job_id)
            while len(self._finished_jobs) > self._max_finished_jobs:
                self._jobs.pop(self._finished_jobs.popleft(), None)


# ---------------------------------------------------------------------- #
# Convenience helpers
# ---------------------------------------------------------------------- #
def build_default_context(
    env: str | None = None, overrides: Mapping[str, Any] | None = None
) -> PipelineContext:
    config = load_config(env, overrides=overrides)
    paths = build_paths(config)
    paths.ensure_directories()
    return PipelineContext(
        config=config, paths=paths, environment=str(config.get("environment") or env)
    )


def build_project_store(context: PipelineContext) -> ProjectStore:
    database = SQLiteDatabase(context.paths.database)
    database.initialize()
    return ProjectStore(database)


def build_default_orchestrator(
    context: PipelineContext,
    *,
    store: ProjectStore | None = None,
    notifier: ProgressNotifier | None = None,
) -> DubbingOrchestrator:
    """Wire the configured providers, stages and stores into an orchestrator."""
    config = context.config
    store = store or build_project_store(context)
    pipeline_cfg = get_section(config, "pipeline")

    transcriber = build_assemblyai_transcriber(config)
    stt_settings = AssemblyAISettings.from_config(config)
    synthesizer = build_elevenlabs_synthesizer(config)

    transcription = TranscriptionStage(
        store,
        transcriber,
        poll_interval_seconds=stt_settings.poll_interval_seconds,
        max_poll_attempts=stt_settings.max_poll_attempts,
    )
    translation = TranslationStage(
        store,
        build_openai_translator(config),
        max_workers=int(pipeline_cfg.get("translation_workers", 4)),
    )
    synthesis = SynthesisStage(
        store,
        synthesizer,
        build_deliverable_store(config, context.paths),
        voice_pool=synthesizer.voice_pool,
        max_workers=int(pipeline_cfg.get("synthesis_workers", 4)),
    )

    max_run_seconds = pipeline_cfg.get("max_run_seconds")
    return DubbingOrchestrator(
        store=store,
        transcription=transcription,
        translation=translation,
        synthesis=synthesis,
        notifier=notifier,
        max_run_seconds=float(max_run_seconds) if max_run_seconds is not None else None,
        max_workers=int(pipeline_cfg.get("max_workers", 1)),
        max_queue=int(pipeline_cfg.get("max_queue", 4)),
        max_finished_jobs=int(pipeline_cfg.get("max_finished_jobs", FINISHED_JOB_RETENTION)),
    )
