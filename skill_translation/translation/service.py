"""
Translation Service

Turns subject text fields into translation jobs, skips everything the cache
already answers, and runs the rest through a small worker pool:

    protect terms -> engine.translate (timeout) -> restore terms -> cache upsert -> event

Two admission policies:
- incremental: fire-and-forget, only fields with no cache entry at all
- batch pretranslate: awaited, also retries fields whose last attempt failed
"""
import asyncio
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from ..config import settings as app_settings
from ..settings_store import TranslationSettings, load_translation_settings
from ..task_executor import TaskExecutor
from .cache_store import TranslationCacheStore
from .events import TranslationEvents
from .manual_store import ManualTranslationStore
from .models import (
    Subject,
    TranslationCompleted,
    TranslationJob,
    TranslationKey,
    TranslationProgress,
    TranslationQueued,
    TranslationRecord,
    TranslationStatus,
    compute_source_hash,
    utc_now,
)
from .terminology import TermProtector, load_glossary
from .translator import PlaceholderLostError, TranslationEngine, TranslationError, TranslationOptions, create_engine

MAX_WORKERS = 2
MIN_TEXT_LENGTH = 3

ProgressCallback = Callable[[TranslationProgress], None]


class JobCancelled(Exception):
    """The job's cancellation scope was signalled while it was running"""


def should_translate(text: Optional[str]) -> bool:
    """Only non-blank text of 3+ characters containing an ASCII letter is translated"""
    if not text or not text.strip():
        return False
    if len(text) < MIN_TEXT_LENGTH:
        return False
    return any("A" <= c <= "Z" or "a" <= c <= "z" for c in text)


class TranslationService:
    """
    Cached, bounded-concurrency translation pipeline.

    Usage:
        async with TranslationService(store, engine, settings, protector) as service:
            await service.queue_incremental(subjects)
            progress = await service.run_batch_pretranslate(subjects, on_progress)
    """

    def __init__(
        self,
        cache_store: TranslationCacheStore,
        engine: TranslationEngine,
        settings: TranslationSettings,
        term_protector: Optional[TermProtector] = None,
        manual_store: Optional[ManualTranslationStore] = None,
        events: Optional[TranslationEvents] = None,
        log=None,
        owns_engine: bool = False,
    ):
        self._cache_store = cache_store
        self._engine = engine
        self._owns_engine = owns_engine
        self._settings = settings
        self._term_protector = term_protector or TermProtector()
        self._manual_store = manual_store
        self._log = log or logger.bind(component="translation_service")
        self.events = events or TranslationEvents(log=self._log)

        # Process-wide cancellation scope
        self._closed = False
        # cache_key -> job currently queued or running
        self._inflight: Dict[str, TranslationJob] = {}

        workers = min(max(settings.max_concurrency, 1), MAX_WORKERS)
        self._executor: TaskExecutor[TranslationJob] = TaskExecutor(
            self._process_job, max_workers=workers, name="translation", log=self._log
        )

    @property
    def settings(self) -> TranslationSettings:
        return self._settings

    async def __aenter__(self) -> "TranslationService":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def start(self) -> None:
        """Start the worker pool (needs a running event loop)"""
        if self._closed:
            raise RuntimeError("TranslationService is closed")
        self._executor.start()

    async def close(self) -> None:
        """Stop all workers; queued and running jobs end up cancelled. An owned engine is closed too"""
        if self._closed:
            return
        self._closed = True
        leftovers = await self._executor.stop()
        for job in leftovers:
            if not job.completion.done():
                job.completion.cancel()
        for job in list(self._inflight.values()):
            if not job.completion.done():
                job.completion.cancel()
        self._inflight.clear()
        if self._owns_engine:
            await self._engine.aclose()
        self._log.info("Translation service closed")

    def get_status(self) -> Dict:
        status = self._executor.get_status()
        status["inflight_count"] = len(self._inflight)
        return status

    async def join(self) -> None:
        """Wait until every queued job has reached a terminal outcome"""
        if self._executor.is_running:
            await self._executor.join()

    # ==================== Keys ====================

    def build_key(self, subject_id: str, field: str, text: str) -> TranslationKey:
        return TranslationKey(
            subject_id=subject_id,
            field=field,
            target_lang=self._settings.target_lang,
            engine_id=self._settings.engine_id,
            engine_version=self._settings.engine_version,
            source_hash=compute_source_hash(text),
        )

    def _candidates(self, subjects: Iterable[Subject]) -> List[Tuple[Subject, str, str, TranslationKey]]:
        candidates = []
        for subject in subjects:
            for field, text in subject.fields.items():
                if not should_translate(text):
                    continue
                candidates.append((subject, field, text, self.build_key(subject.id, field, text)))
        return candidates

    # ==================== Read side ====================

    async def get_cached_translations(self, subjects: Iterable[Subject]) -> Dict[str, Dict[str, str]]:
        """
        Ready translations for the given subjects.

        Returns:
            subject_id -> {field: translated text}; fields without a Ready
            record are omitted. Manual translations win over cached ones.
        """
        subjects = list(subjects)
        candidates = self._candidates(subjects)
        records = await self._cache_store.get_batch(key for _, _, _, key in candidates)

        result: Dict[str, Dict[str, str]] = {}
        for subject, field, _, key in candidates:
            record = records.get(key.cache_key)
            if record is not None and record.is_ready:
                result.setdefault(subject.id, {})[field] = record.translated_text

        if self._manual_store is not None:
            manual = await self._manual_store.load_translations(subjects)
            for subject_id, fields in manual.items():
                result.setdefault(subject_id, {}).update(fields)

        return result

    # ==================== Job admission ====================

    async def build_jobs(self, subjects: Iterable[Subject], retry_failed: bool) -> List[TranslationJob]:
        """
        Jobs for every eligible field without a Ready record.

        Failed records are skipped unless retry_failed. A field whose key is
        already queued or running maps to that existing job.
        """
        candidates = self._candidates(subjects)
        records = await self._cache_store.get_batch(key for _, _, _, key in candidates)

        loop = asyncio.get_running_loop()
        jobs: List[TranslationJob] = []
        seen: Dict[str, TranslationJob] = {}

        for subject, field, text, key in candidates:
            record = records.get(key.cache_key)
            if record is not None:
                if record.is_ready:
                    continue
                if record.status == TranslationStatus.FAILED and not retry_failed:
                    continue

            job = seen.get(key.cache_key) or self._live_job(key.cache_key)
            if job is None:
                job = TranslationJob(
                    subject_id=subject.id,
                    display_name=subject.name or subject.id,
                    field=field,
                    source_text=text,
                    key=key,
                    cancel_scope=asyncio.Event(),
                    completion=loop.create_future(),
                )
            if key.cache_key not in seen:
                seen[key.cache_key] = job
                jobs.append(job)

        return jobs

    def _live_job(self, cache_key: str) -> Optional[TranslationJob]:
        """Queued or running job for a key, unless every caller already abandoned it"""
        job = self._inflight.get(cache_key)
        if job is None or job.cancel_scope.is_set():
            return None
        return job

    def _enqueue(self, job: TranslationJob) -> bool:
        """Queue a job unless it is already queued or running"""
        cache_key = job.key.cache_key
        if self._live_job(cache_key) is not None:
            return False
        self._inflight[cache_key] = job
        self.events.emit_queued(TranslationQueued(job.subject_id, job.field))
        self._executor.submit(job)
        return True

    def _ensure_started(self) -> None:
        if not self._executor.is_running:
            self.start()

    async def queue_incremental(self, subjects: Iterable[Subject]) -> int:
        """
        Queue fields that have never been translated and return immediately.

        Returns:
            Number of jobs queued by this call
        """
        if not self._settings.enable_translation:
            return 0
        self._ensure_started()

        jobs = await self.build_jobs(subjects, retry_failed=False)
        queued = 0
        for job in jobs:
            if self._enqueue(job):
                # Nobody can withdraw from a fire-and-forget job
                job.interested += 1
                job.completion.add_done_callback(_consume_outcome)
                queued += 1

        if queued:
            self._log.info(f"Queued {queued} incremental translation job(s)")
        return queued

    async def run_batch_pretranslate(
        self,
        subjects: Iterable[Subject],
        progress: Optional[ProgressCallback] = None,
    ) -> TranslationProgress:
        """
        Translate every field not yet Ready (retrying failures) and wait.

        Progress is reported after each job in submission order. Cancelling
        the caller cancels the unfinished jobs no other caller is waiting on.
        """
        if not self._settings.enable_translation:
            return TranslationProgress()
        self._ensure_started()

        jobs = await self.build_jobs(subjects, retry_failed=True)
        state = TranslationProgress(total=len(jobs))
        if not jobs:
            return state

        for job in jobs:
            job.interested += 1
            self._enqueue(job)
        self._log.info(f"Batch pretranslate started: {len(jobs)} job(s)")

        pending = list(jobs)
        try:
            for job in jobs:
                try:
                    # shield: a cancelled caller must not cancel a job another caller shares
                    record = await asyncio.shield(job.completion)
                    if not record.is_ready:
                        state.failed += 1
                except asyncio.CancelledError:
                    if job.completion.cancelled():
                        self._log.info("Batch pretranslate stopped: job cancelled")
                    raise
                except Exception as e:
                    self._log.warning(f"Translation job for {job.subject_id}/{job.field} raised: {e}")
                    state.failed += 1

                pending.remove(job)
                state.completed += 1
                state.current_subject = job.display_name
                state.current_field = job.field
                if progress is not None:
                    progress(TranslationProgress(
                        total=state.total,
                        completed=state.completed,
                        failed=state.failed,
                        current_subject=state.current_subject,
                        current_field=state.current_field,
                    ))
        except BaseException:
            # Caller cancelled or its progress sink raised; jobs another caller still waits on keep running
            for job in pending:
                job.release()
            raise

        self._log.info(
            f"Batch pretranslate finished: {state.completed}/{state.total} done, {state.failed} failed"
        )
        return state

    async def delete_cache(self) -> None:
        await self._cache_store.delete_all()

    # ==================== Workers ====================

    async def _process_job(self, job: TranslationJob) -> None:
        """Worker entry point: drive one job to exactly one terminal outcome"""
        cache_key = job.key.cache_key
        try:
            if job.completion.done():
                return
            if job.cancel_scope.is_set() or self._closed:
                job.completion.cancel()
                return

            try:
                record = await self._translate_job(job)
            except JobCancelled:
                self._log.debug(f"Translation cancelled: {job.subject_id}/{job.field}")
                job.completion.cancel()
                return
            except asyncio.CancelledError:
                job.completion.cancel()
                raise
            except Exception as e:
                self._log.error(f"Translation job {job.subject_id}/{job.field} crashed: {e}")
                if not job.completion.done():
                    job.completion.set_exception(e)
                return

            if not job.completion.done():
                job.completion.set_result(record)
        finally:
            if self._inflight.get(cache_key) is job:
                del self._inflight[cache_key]

    async def _translate_job(self, job: TranslationJob) -> TranslationRecord:
        started = utc_now()
        protected = self._term_protector.protect(job.source_text)

        try:
            translated = await self._call_engine(job, protected.text)
            missing = self._term_protector.missing_placeholders(translated, protected)
            if missing:
                raise PlaceholderLostError(missing)
            restored = self._term_protector.restore(translated, protected)
            record = TranslationRecord.ready(job.key, restored, created_at=started)
        except JobCancelled:
            raise
        except Exception as e:
            error = str(e) or type(e).__name__
            self._log.warning(f"Translation failed for {job.subject_id}/{job.field}: {error}")
            record = TranslationRecord.failed(job.key, error, created_at=started)

        await self._cache_store.upsert(record)
        self.events.emit_completed(TranslationCompleted(
            subject_id=job.subject_id,
            field=job.field,
            success=record.is_ready,
            translated_text=record.translated_text if record.is_ready else None,
            error=record.error or None,
        ))
        return record

    async def _call_engine(self, job: TranslationJob, text: str) -> str:
        """Run the backend call bounded by the timeout and the job's cancellation scope"""
        timeout = self._settings.timeout if self._settings.timeout > 0 else None
        engine_task = asyncio.ensure_future(self._engine.translate(
            text,
            self._settings.source_lang,
            self._settings.target_lang,
            TranslationOptions(max_length=self._settings.max_length),
        ))
        scope_task = asyncio.ensure_future(job.cancel_scope.wait())

        try:
            await asyncio.wait(
                {engine_task, scope_task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            engine_task.cancel()
            raise
        finally:
            scope_task.cancel()

        if engine_task.done():
            return engine_task.result()

        engine_task.cancel()
        await asyncio.gather(engine_task, return_exceptions=True)
        if job.cancel_scope.is_set():
            raise JobCancelled()
        raise TranslationError(f"Translation timed out after {timeout:g}s")


def _consume_outcome(future: "asyncio.Future[TranslationRecord]") -> None:
    # Nobody awaits fire-and-forget jobs; retrieve the exception so asyncio does not warn
    if not future.cancelled():
        future.exception()


def create_translation_service(
    library_path: Optional[Path] = None,
    model_directory: Optional[Path] = None,
    engine_name: Optional[str] = None,
) -> TranslationService:
    """
    Wire a TranslationService from application settings.

    The cache, glossary and manual translation files live in DATA_DIR; the
    library's .translation_meta.json and the model directory tune the rest.
    """
    engine = create_engine(engine_name)
    # The remote service runs the ONNX Marian model; other engines key the cache by their own name
    engine_id = None if engine.name == "remote" else engine.name
    translation_settings = load_translation_settings(
        model_directory or app_settings.MODEL_DIR, library_path, engine_id=engine_id
    )
    glossary = load_glossary(app_settings.glossary_path, translation_settings.target_lang)
    manual_store = None
    if library_path is not None:
        manual_store = ManualTranslationStore(app_settings.manual_translation_path, str(library_path))

    return TranslationService(
        cache_store=TranslationCacheStore(app_settings.cache_path),
        engine=engine,
        settings=translation_settings,
        term_protector=glossary.to_protector(),
        manual_store=manual_store,
        owns_engine=True,
    )
