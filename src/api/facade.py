# src/api/facade.py — v1
"""Composition root — builds and wires the core services once.

Usage:
    from genforge.api.facade import create_core

    with create_core() as core:
        core.pool.discover()
        report = await core.runner(executor).build("p1", "Build a todo app", steps)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from genforge.build.runner import BuildRunner
from genforge.build.sequential import SequentialBuildRegistry
from genforge.config.settings import Settings
from genforge.parser.models import ParserConfig
from genforge.parser.output_parser import OutputParser
from genforge.pool.discovery import BaseModelProbe, OpenAIModelProbe
from genforge.pool.scheduler import ModelPoolScheduler
from genforge.scoring.scorer import OutcomeScorer

if TYPE_CHECKING:
    from genforge.core.models import SlotRole, TaskType
    from genforge.llm.base_client import BaseSlotExecutor

logger = logging.getLogger(__name__)


class ForgeCore:
    """Owns one scorer, parser, pool and build registry.

    Attributes:
        settings: Validated settings the services were built from.
        scorer: Outcome scorer.
        parser: Output parser.
        pool: Model pool scheduler, wired to scorer and probe.
        builds: Sequential build registry.
    """

    def __init__(
        self,
        settings: Settings,
        probe: BaseModelProbe | None = None,
    ) -> None:
        self.settings = settings
        self.scorer = OutcomeScorer.from_settings(settings)
        self.parser = OutputParser(
            config=ParserConfig(
                extract_code_blocks=settings.parser_extract_code_blocks,
                validate_json=settings.parser_validate_json,
                detect_truncation=settings.parser_detect_truncation,
                clean_artifacts=settings.parser_clean_artifacts,
                max_output_length=settings.parser_max_output_length,
            ),
            stats_capacity=settings.parser_stats_capacity,
        )
        probe = probe or OpenAIModelProbe(
            api_key=settings.pool_api_key, timeout=settings.pool_probe_timeout_s
        )
        self.pool = ModelPoolScheduler.from_settings(settings, probe=probe, scorer=self.scorer)
        self.builds = SequentialBuildRegistry(context_separator=settings.build_context_separator)
        self._closed = False
        logger.info("Core services ready (endpoints=%s)", ", ".join(settings.pool_endpoints_list))

    def runner(
        self,
        executor: BaseSlotExecutor,
        role: SlotRole | None = None,
        task_type: TaskType = "generate",
    ) -> BuildRunner:
        """Build runner over this core's registry, pool and parser."""
        return BuildRunner(
            registry=self.builds,
            pool=self.pool,
            parser=self.parser,
            executor=executor,
            role=role or self.settings.build_default_role,
            task_type=task_type,
            acquire_timeout_s=self.settings.build_acquire_timeout_s,
            acquire_poll_s=self.settings.build_acquire_poll_s,
        )

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear down every service. Safe to call twice."""
        if self._closed:
            return
        self.builds.close()
        self.pool.close()
        self.scorer.clear()
        self.parser.clear()
        self._closed = True
        logger.info("Core services closed")

    def __enter__(self) -> ForgeCore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def create_core(
    settings: Settings | None = None,
    probe: BaseModelProbe | None = None,
    configure_logging: bool = False,
) -> ForgeCore:
    """Build a ForgeCore from settings (loaded from .env when None)."""
    settings = settings or Settings()
    if configure_logging:
        from genforge.logging.logger import setup_logging

        setup_logging(
            level=settings.log_level,
            log_format=settings.log_format,
            log_file=settings.log_file,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
        )
    return ForgeCore(settings, probe=probe)
