"""Main test runner and orchestrator.

Coordinates a conformance run against one server, managing:
- Case sequencing from declared fixture dependencies
- Bucket provisioning and teardown
- S3 and HTTP client lifecycle
- Publishing fixtures between cases
- Reporter callbacks

The first failing case is fatal: later cases depend on fixtures it was
supposed to produce, so they are reported as skipped.
"""

import logging
import time
from typing import Any, Optional, Sequence

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from s3conform.cases import (
    CASE_CATALOGUE,
    ConformanceCase,
    ProbeSession,
    sequence_cases,
)
from s3conform.errors import FixtureError
from s3conform.executor import Executor
from s3conform.fixtures import BucketFixture
from s3conform.models import (
    CaseResult,
    ResultStatus,
    RunResult,
    RunSettings,
    ServerConfig,
)
from s3conform.orchestrator import Orchestrator
from s3conform.registry import SuiteState
from s3conform.s3_client import build_s3_client
from s3conform.signer import Signer, SigV4Signer

logger = logging.getLogger(__name__)


class ConformanceRunner:
    """Runs the case catalogue against a single server.

    Clients and signer may be injected; anything not injected is built
    from the server configuration and closed again after the run.
    """

    def __init__(
        self,
        config: ServerConfig,
        settings: Optional[RunSettings] = None,
        reporter: Optional[Any] = None,
        catalogue: Sequence[ConformanceCase] = CASE_CATALOGUE,
        s3_client: Optional[Any] = None,
        http_client: Optional[httpx.Client] = None,
        signer: Optional[Signer] = None,
    ):
        """Initialize the test runner.

        Args:
            config: Server under test
            settings: Run settings (defaults to RunSettings())
            reporter: Optional reporter for progress callbacks
            catalogue: Cases to run, in preferred order
            s3_client: boto3 client used for bucket provisioning
            http_client: httpx client used for probes
            signer: Request signer for probes
        """
        self.config = config
        self.settings = settings or RunSettings()
        self.reporter = reporter
        self.catalogue = list(catalogue)
        self.s3_client = s3_client
        self.http_client = http_client
        self.signer = signer

    def run(self) -> RunResult:
        """Run every case in dependency order.

        Returns:
            RunResult with one CaseResult per catalogue entry.
        """
        start_time = time.time()
        cases = sequence_cases(self.catalogue)
        state = SuiteState(config=self.config, settings=self.settings)
        run_result = RunResult(endpoint_url=self.config.endpoint_url, status=ResultStatus.PASS)

        if self.reporter:
            self.reporter.on_run_start(self.config.endpoint_url, len(cases))

        s3_client = self.s3_client or build_s3_client(self.config)
        http_client = self.http_client or httpx.Client(timeout=self.settings.timeout)
        session = ProbeSession(
            executor=Executor(
                self.config,
                http_client,
                self.signer or SigV4Signer.from_config(self.config),
            ),
            orchestrator=Orchestrator(
                max_in_flight=self.settings.max_in_flight,
                cancel_on_failure=self.settings.cancel_on_failure,
            ),
        )

        try:
            with BucketFixture(s3_client, state, self.settings.teardown) as fixture:
                self._run_cases(cases, session, state, run_result)
                if run_result.status != ResultStatus.PASS:
                    fixture.mark_failed()
        except (BotoCoreError, ClientError) as e:
            logger.error("Bucket provisioning failed: %s", e)
            run_result.status = ResultStatus.ERROR
            run_result.error_message = f"Bucket provisioning failed: {e}"
        finally:
            if self.http_client is None:
                http_client.close()

        for case in cases:
            if case.case_id not in run_result.cases:
                run_result.cases[case.case_id] = CaseResult(
                    case_id=case.case_id,
                    case_name=case.name,
                    status=ResultStatus.SKIP,
                )

        run_result.duration_seconds = time.time() - start_time

        if self.reporter:
            self.reporter.on_run_complete(run_result)

        return run_result

    def _run_cases(
        self,
        cases: Sequence[ConformanceCase],
        session: ProbeSession,
        state: SuiteState,
        run_result: RunResult,
    ) -> None:
        total = len(cases)
        for position, case in enumerate(cases, start=1):
            if self.reporter:
                self.reporter.on_case_start(position, total, case.name)

            result = self.run_case(case, session, state)
            run_result.cases[case.case_id] = result

            if self.reporter:
                self.reporter.on_case_complete(position, total, result)

            if result.status != ResultStatus.PASS:
                run_result.status = ResultStatus.FAIL
                run_result.error_message = f"{case.name}: {result.error_message}"
                logger.error("Stopping run: %s failed", case.name)
                return

    def run_case(
        self,
        case: ConformanceCase,
        session: ProbeSession,
        state: SuiteState,
    ) -> CaseResult:
        """Run one case and publish or retire its fixtures if it passed."""
        start_time = time.time()
        logger.info("Running %s", case.name)

        try:
            outcome = case.run(session, state)
        except FixtureError as e:
            return CaseResult(
                case_id=case.case_id,
                case_name=case.name,
                status=ResultStatus.ERROR,
                duration_seconds=time.time() - start_time,
                error_message=str(e),
            )

        if outcome.passed:
            for kind in case.produces:
                state.registry.publish(kind)
            for kind in case.retires:
                state.registry.retire(kind)
            status = ResultStatus.PASS
            error_message = None
        else:
            status = ResultStatus.FAIL
            error_message = str(outcome.first_error)

        duration = time.time() - start_time
        logger.info("%s: %s (%d probes, %.2fs)", case.name, status.value, len(outcome.results), duration)

        return CaseResult(
            case_id=case.case_id,
            case_name=case.name,
            status=status,
            probes=len(outcome.results),
            duration_seconds=duration,
            error_message=error_message,
        )
