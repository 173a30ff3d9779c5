"""Hands a staged build to the external publishing tool.

The tool is a black box: a wrapper script in the publish tool directory
that takes its inputs as positional arguments and reports success only
through its exit code.  Before each run a per-build app script is
rendered from the target's template; it is removed again afterwards.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from build_uploader.cloud_build import BuildDefinition
from build_uploader.errors import ConfigurationError, PublishError
from build_uploader.platform_utils import build_tool_command, default_publish_tool_name
from build_uploader.targets import WatchTarget

logger = logging.getLogger(__name__)

SCRIPTS_DIR_NAME = "scripts"


@dataclass
class PublishOutcome:
    """Result of one publishing tool run."""

    success: bool
    exit_code: int | None
    output: str = ""

    def raise_for_status(self) -> None:
        """Raise PublishError if the tool did not exit cleanly."""
        if self.success:
            return
        lines = self.output.strip().splitlines()
        detail = lines[-1] if lines else "no output"
        raise PublishError(f"publishing tool exit code {self.exit_code}: {detail}")


def render_app_script(template: str, build: BuildDefinition) -> str:
    """Substitute the build placeholders in an app script template."""
    replacements = {
        "$buildNumber$": str(build.build_number),
        "$fileName$": build.file_name,
        "$commitId$": build.commit_id,
        "$commitMessage$": build.commit_message,
        "$scmBranch$": build.scm_branch,
    }
    for placeholder, value in replacements.items():
        template = template.replace(placeholder, value)
    return template


def app_script_name(template_name: str, build_number: int) -> str:
    """Return the generated script name for *template_name* and a build."""
    if "template" in template_name:
        return template_name.replace("template", str(build_number))
    return f"{build_number}_{template_name}"


class PublishInvoker:
    """Runs the publishing tool for one staged build at a time."""

    def __init__(
        self,
        tool_dir: Path,
        tool_name: str | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ):
        self.tool_dir = Path(tool_dir)
        self.tool_name = tool_name or default_publish_tool_name()
        self._runner = runner

    @property
    def scripts_dir(self) -> Path:
        return self.tool_dir / SCRIPTS_DIR_NAME

    def template_path(self, target: WatchTarget) -> Path:
        return self.scripts_dir / target.destination.app_script_template

    def check_template(self, target: WatchTarget) -> None:
        """Raise ConfigurationError when the target's script template is missing."""
        path = self.template_path(target)
        if not path.is_file():
            raise ConfigurationError(f"App script template not found: {path}")

    def materialize_script(self, target: WatchTarget, build: BuildDefinition) -> Path:
        """Render the target's template for *build* and return the new script path."""
        self.check_template(target)
        source = self.template_path(target)
        script = self.scripts_dir / app_script_name(
            target.destination.app_script_template, build.build_number
        )
        try:
            template = source.read_text(encoding="utf-8")
            script.write_text(render_app_script(template, build), encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            script.unlink(missing_ok=True)
            raise ConfigurationError(f"Could not render app script from {source}: {exc}") from exc
        logger.debug("Wrote app script %s", script)
        return script

    def command(self, target: WatchTarget, script: Path) -> list[str]:
        dest = target.destination
        executable = (Path(dest.content_dir) / dest.executable_path).resolve()
        args = [
            dest.username,
            dest.password,
            dest.app_id,
            script.name,
            str(executable),
            "true" if dest.use_drm else "false",
        ]
        return build_tool_command(self.tool_dir / self.tool_name, args)

    def publish(self, target: WatchTarget, build: BuildDefinition) -> PublishOutcome:
        """Publish the staged *build* for *target* and report how it went."""
        script = self.materialize_script(target, build)
        try:
            logger.info("Invoking publishing tool to upload %s", build)
            try:
                proc = self._runner(
                    self.command(target, script),
                    cwd=str(self.tool_dir),
                    capture_output=True,
                    text=True,
                    check=False,
                )
            except OSError as exc:
                logger.error("Could not start publishing tool: %s", exc)
                return PublishOutcome(success=False, exit_code=None, output=str(exc))

            stdout = proc.stdout or ""
            stderr = proc.stderr or ""
            if stdout:
                logger.info(stdout.rstrip())
            if proc.returncode == 0:
                logger.info("Publishing tool finished successfully")
            else:
                if stderr:
                    logger.error(stderr.rstrip())
                logger.error("Publishing tool failed (exit code %d)", proc.returncode)
            return PublishOutcome(
                success=proc.returncode == 0,
                exit_code=proc.returncode,
                output=stdout + stderr,
            )
        finally:
            if script.exists():
                logger.info("Removing temporary app script %s", script.name)
                script.unlink()
