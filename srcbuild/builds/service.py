"""Build orchestration.

This module ties the pieces of a source build together:
1. Select the source provider for the request URLs and check out
2. Select the build tool for the checked-out project
3. Rewrite the project version to the source version
4. Build

build_dependency is the entry point used for a single dependency: it looks
the dependency up in the repository configuration, locks a workspace for
the whole build and composes the BuildRequest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from srcbuild.builds.request import BuildRequest
from srcbuild.builds.tools import (
    BuildTool,
    MavenBuildTool,
    MavenWrapperBuildTool,
    select_build_tool,
)
from srcbuild.config import Settings, get_settings
from srcbuild.errors import SrcBuildError
from srcbuild.fs.locking import PathLocker, default_path_locker
from srcbuild.fs.workspaces import BuildDirectoriesManager
from srcbuild.repositories.io import find_repository
from srcbuild.repositories.schema import ConfigurationSchema
from srcbuild.scm.base import SourceProvider, select_provider
from srcbuild.scm.git import GitSourceProvider
from srcbuild.types import BatchMode, OperationResult
from srcbuild.version import SourceVersion

logger = logging.getLogger(__name__)


class BuildService:
    """Checks out and builds source versions.

    Args:
        build_tools: Build tools, in order of preference.
        source_providers: Source providers, in order of preference.
    """

    def __init__(
        self,
        build_tools: Iterable[BuildTool],
        source_providers: Iterable[SourceProvider],
    ) -> None:
        self.build_tools = list(build_tools)
        self.source_providers = list(source_providers)

    def build(self, request: BuildRequest) -> None:
        """Check out and build a request.

        Raises:
            NoProviderError: If no provider supports the first URL.
            ScmError: If no URL could be checked out.
            NoBuildToolError: If no tool can build the checked-out project.
            BuildFailedError: If setting the version or the build fails.
            CommandError: If a command cannot start or times out.
        """
        logger.info(
            "Source build of %s in %s", request.src_version, request.project_root_directory
        )
        provider = select_provider(self.source_providers, request.scm_urls)
        provider.checkout(request)

        tool = select_build_tool(self.build_tools, request.project_root_directory)
        tool.set_versions(request)
        tool.build(request)
        logger.info("Built %s", request.src_version)


def default_build_service(
    settings: Settings | None = None,
) -> BuildService:
    """Create a BuildService with the bundled tools and providers."""
    if settings is None:
        settings = get_settings()
    poll_interval = settings.poll_interval_ms / 1000
    return BuildService(
        build_tools=[
            MavenWrapperBuildTool(poll_interval=poll_interval),
            MavenBuildTool(poll_interval=poll_interval),
        ],
        source_providers=[
            GitSourceProvider(
                git_executable=settings.git_executable, poll_interval=poll_interval
            ),
        ],
    )


class BatchBuildResult(BaseModel):
    """Result of building several requests.

    Attributes:
        total: Number of requests given.
        succeeded: Number of successful builds.
        failed: Number of failed builds.
        stopped_early: True when fail-fast mode skipped remaining requests.
        results: One result per attempted request, in order.
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    stopped_early: bool = False
    results: list[OperationResult] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.stopped_early


def _request_details(request: BuildRequest) -> dict[str, object]:
    return {
        "src_version": request.src_version.raw,
        "directory": str(request.project_root_directory),
    }


def build_batch(
    service: BuildService,
    requests: Sequence[BuildRequest],
    mode: BatchMode = BatchMode.BEST_EFFORT,
) -> BatchBuildResult:
    """Build requests one after the other.

    Args:
        service: The service building each request.
        requests: Requests, built in order.
        mode: FAIL_FAST stops at the first failure; BEST_EFFORT records it
            and continues.

    Returns:
        BatchBuildResult with a result per attempted request.
    """
    result = BatchBuildResult(total=len(requests))
    for request in requests:
        try:
            service.build(request)
        except SrcBuildError as e:
            logger.error("Build of %s failed: %s", request.src_version, e)
            result.failed += 1
            result.results.append(
                OperationResult(
                    success=False,
                    message=str(e),
                    code=e.code,
                    details=_request_details(request),
                )
            )
            if mode is BatchMode.FAIL_FAST:
                result.stopped_early = len(result.results) < result.total
                break
            continue

        result.succeeded += 1
        result.results.append(
            OperationResult(
                success=True,
                message=f"Built {request.src_version}",
                details=_request_details(request),
            )
        )
    return result


def build_dependency(
    configuration: ConfigurationSchema,
    group_id: str,
    raw_version: str,
    settings: Settings | None = None,
    service: BuildService | None = None,
    locker: PathLocker[object] | None = None,
) -> BuildRequest | None:
    """Build a dependency from source if its version asks for it.

    Args:
        configuration: The repository configuration.
        group_id: groupId of the dependency.
        raw_version: Version of the dependency, e.g. ``1.0-SRC-tag-v1.0``.
        settings: Application settings.
        service: Service doing the build; the default one if not given.
        locker: Locker guarding the workspaces; the process-wide one if
            not given.

    Returns:
        The request that was built, or None if ``raw_version`` is not a
        source version or source builds are switched off.

    Raises:
        MalformedVersionError: If ``raw_version`` is a malformed source version.
        RepositoryNotFoundError: If no repository selects ``group_id``.
        NoWorkspaceAvailableError: If every workspace slot is busy.
        SrcBuildError: If the build itself fails.
    """
    src_version = SourceVersion.parse(raw_version)
    if src_version is None:
        logger.debug("Version %s of %s is not a source version", raw_version, group_id)
        return None
    if configuration.skip:
        logger.info("Skipping source build of %s:%s", group_id, raw_version)
        return None

    if settings is None:
        settings = get_settings()
    if service is None:
        service = default_build_service(settings)
    if locker is None:
        locker = default_path_locker()

    repository = find_repository(configuration, group_id)
    sources_dir = configuration.sources_directory or settings.sources_dir
    manager = BuildDirectoriesManager(
        sources_dir,
        locker,
        max_slots=settings.max_workspace_slots,
        create_retries=settings.directory_create_retries,
    )

    with manager.open_build_directory(repository.id_as_path, src_version) as lock:
        request = BuildRequest(
            project_root_directory=lock.path,
            src_version=src_version,
            scm_urls=repository.urls,
            build_arguments=repository.build_arguments,
            add_default_build_arguments=repository.add_default_build_arguments,
            skip_tests=repository.skip_tests,
            forward_properties=configuration.forward_properties,
            verbosity=configuration.verbosity,
            io_redirects=configuration.builder_io.to_io_redirects(),
            timeout_ms=settings.build_timeout_ms,
        )
        service.build(request)
    return request


def build_dependencies(
    configuration: ConfigurationSchema,
    dependencies: Sequence[tuple[str, str]],
    mode: BatchMode = BatchMode.BEST_EFFORT,
    settings: Settings | None = None,
    service: BuildService | None = None,
    locker: PathLocker[object] | None = None,
) -> BatchBuildResult:
    """Build several dependencies with build_dependency.

    Args:
        configuration: The repository configuration.
        dependencies: ``(group_id, raw_version)`` pairs, built in order.
        mode: FAIL_FAST stops at the first failure; BEST_EFFORT records it
            and continues.
        settings: Application settings.
        service: Service doing the builds.
        locker: Locker guarding the workspaces.

    Returns:
        BatchBuildResult with a result per attempted dependency.
    """
    if settings is None:
        settings = get_settings()
    if service is None:
        service = default_build_service(settings)

    result = BatchBuildResult(total=len(dependencies))
    for group_id, raw_version in dependencies:
        details: dict[str, object] = {"group_id": group_id, "version": raw_version}
        try:
            request = build_dependency(
                configuration,
                group_id,
                raw_version,
                settings=settings,
                service=service,
                locker=locker,
            )
        except SrcBuildError as e:
            logger.error("Build of %s:%s failed: %s", group_id, raw_version, e)
            result.failed += 1
            result.results.append(
                OperationResult(success=False, message=str(e), code=e.code, details=details)
            )
            if mode is BatchMode.FAIL_FAST:
                result.stopped_early = len(result.results) < result.total
                break
            continue

        result.succeeded += 1
        if request is None:
            message = f"{group_id}:{raw_version} is not built from source"
        else:
            message = f"Built {group_id}:{raw_version}"
            details["directory"] = str(request.project_root_directory)
        result.results.append(OperationResult(success=True, message=message, details=details))
    return result


__all__ = [
    "BatchBuildResult",
    "BuildService",
    "build_batch",
    "build_dependencies",
    "build_dependency",
    "default_build_service",
]
