"""JSON reporter for structured output and GitHub Actions integration.

Generates JSON output suitable for:
- CI artifacts and dashboards
- GitHub Actions workflow outputs
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from s3conform.models import CaseResult, ResultStatus, RunResult
from s3conform.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
        github_output: If True, write to GITHUB_OUTPUT for Actions
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        github_output: bool = False,
    ):
        self.output_path = output_path
        self.github_output = github_output
        self.output: Optional[dict] = None

    def on_run_start(self, endpoint_url: str, total_cases: int) -> None:
        """Called before the first case runs. No-op for JSON reporter."""
        pass

    def on_case_start(self, position: int, total: int, case_name: str) -> None:
        """Called when a test case starts. No-op for JSON reporter."""
        pass

    def on_case_complete(self, position: int, total: int, result: CaseResult) -> None:
        """Called when a test case completes. No-op - data comes from the run result."""
        pass

    def on_run_complete(self, result: RunResult) -> dict:
        """Generate the JSON document and write it out.

        Args:
            result: Result of the whole run

        Returns:
            The generated JSON data as a dictionary
        """
        output = self._generate_output(result)
        self.output = output

        if self.output_path:
            self._write_to_file(output)

        if self.github_output:
            self._write_github_output(output)

        return output

    def _generate_output(self, result: RunResult) -> dict:
        timestamp = datetime.now(timezone.utc).isoformat()

        counts = {status: 0 for status in ResultStatus}
        cases = {}
        for case_id, case_result in result.cases.items():
            counts[case_result.status] += 1
            case_data = {
                "name": case_result.case_name,
                "status": case_result.status.value,
                "probes": case_result.probes,
                "duration_seconds": round(case_result.duration_seconds, 3),
            }
            if case_result.error_message:
                case_data["error"] = case_result.error_message
            cases[case_id] = case_data

        output = {
            "timestamp": timestamp,
            "endpoint": result.endpoint_url,
            "status": result.status.value,
            "duration_seconds": round(result.duration_seconds, 3),
            "cases": cases,
            "summary": {
                "total_cases": len(result.cases),
                "passed": counts[ResultStatus.PASS],
                "failed": counts[ResultStatus.FAIL],
                "errors": counts[ResultStatus.ERROR],
                "skipped": counts[ResultStatus.SKIP],
                "all_passed": result.all_passed,
            },
        }
        if result.error_message:
            output["error"] = result.error_message
        return output

    def _write_to_file(self, output: dict) -> None:
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2)

    def _write_github_output(self, output: dict) -> None:
        """Append summary values to the GITHUB_OUTPUT file, if set."""
        github_output_file = os.environ.get("GITHUB_OUTPUT")
        if not github_output_file:
            return

        summary = output["summary"]
        with open(github_output_file, "a", encoding="utf-8") as f:
            f.write(f"all_passed={str(summary['all_passed']).lower()}\n")
            f.write(f"total_cases={summary['total_cases']}\n")
            f.write(f"passed_cases={summary['passed']}\n")
            f.write(f"failed_cases={summary['failed']}\n")

            # Full JSON as multiline output
            f.write("results<<EOF\n")
            f.write(json.dumps(output))
            f.write("\nEOF\n")
