from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path
from typing import NoReturn

import typer

from postrel import __version__
from postrel.core.config import CONFIG_FILENAME, Config, Credentials, Environment, load_config
from postrel.core.errors import ErrorCode
from postrel.core.result import Err
from postrel.git.repository import GitFatalError, GitRepository
from postrel.output.console import ConsoleProtocol, RichConsole
from postrel.release.checksum import fetch_release_artifacts
from postrel.release.dispatcher import DispatchReport, Dispatcher
from postrel.release.github import GitHubClient, ensure_gh_available
from postrel.release.integrations import IntegrationRunner, detect_go_version, integration_targets
from postrel.release.targets import DISTROS, DistroRunner, distro_targets
from postrel.release.version import VERSION_FILE, Version, read_version_file
from postrel.release.website import publish_website, render_website

app = typer.Typer(
    add_completion=False,
    rich_markup_mode="rich",
)


def _exit(err: str, *, code: ErrorCode) -> NoReturn:
    typer.echo(f"error: {err}", err=True)
    raise typer.Exit(code=int(code))


def _under(root: Path, path: Path) -> Path:
    """Environment paths are relative to the source checkout."""
    return path if path.is_absolute() else root / path


def _print_report(console: ConsoleProtocol, label: str, report: DispatchReport) -> None:
    for outcome in report.outcomes:
        if outcome.ok:
            line = f"{label} {outcome.name}: {outcome.summary}"
            if outcome.pr_url is not None:
                line += f" ({outcome.pr_url})"
            console.success(line)
        else:
            console.error(f"{label} {outcome.name}: {outcome.error}")


@app.command()
def postrel(
    render_only: bool = typer.Option(
        False, "--render-only", help="Only render the website page; no git or GitHub."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before changing anything."),
    source: Path | None = typer.Option(
        None, "--source", help="Upstream checkout holding VERSION (default: cwd)"
    ),
    config_path: Path | None = typer.Option(
        None, "--config", help=f"Config file (default: <source>/{CONFIG_FILENAME})"
    ),
    distro: list[str] = typer.Option([], "--distro", help="Distribution to update (repeatable)"),
    skip_integrations: bool = typer.Option(
        False, "--skip-integrations", help="Do not touch integration repositories."
    ),
    skip_milestones: bool = typer.Option(
        False, "--skip-milestones", help="Do not create GitHub milestones."
    ),
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
) -> None:
    """Propagate the release in VERSION to the website, integrations and distributions."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    try:
        source_root = (source or Path.cwd()).expanduser().resolve()
    except OSError as e:
        _exit(f"invalid --source: {e}", code=ErrorCode.USER_ERROR)

    cfg_r = load_config(config_path or source_root / CONFIG_FILENAME)
    if isinstance(cfg_r, Err):
        _exit(f"{cfg_r.error.message} ({cfg_r.error.path})", code=ErrorCode.USER_ERROR)
    cfg = cfg_r.value

    ver_r = read_version_file(source_root / VERSION_FILE)
    if isinstance(ver_r, Err):
        _exit(ver_r.error.message, code=ErrorCode.USER_ERROR)
    cur = ver_r.value

    distros = tuple(distro) or cfg.distros
    unknown = [d for d in distros if d not in DISTROS]
    if unknown:
        _exit(f"unknown distribution(s): {', '.join(unknown)}", code=ErrorCode.USER_ERROR)

    env = Environment.from_env(os.environ)
    console = RichConsole()
    console.header(f"Post-release for {cfg.project.name} {cur.tag}")

    html_dir = _under(source_root, env.html_dir)
    rendered = render_website(html_dir, cur)
    if isinstance(rendered, Err):
        console.error(f"Failed to update website: {rendered.error}")
        if render_only:
            raise typer.Exit(code=int(ErrorCode.IO_ERROR))
    else:
        console.success(f"Wrote {rendered.value}")

    if render_only:
        console.info("Render-only mode, stopping here.")
        raise typer.Exit(code=0)

    creds = env.credentials()
    if isinstance(creds, Err):
        _exit(creds.error.message, code=ErrorCode.ENV_ERROR)
    gh = ensure_gh_available()
    if isinstance(gh, Err):
        _exit(f"{gh.error.message}. {gh.error.hint}", code=ErrorCode.ENV_ERROR)

    if not yes and not typer.confirm(
        f"Publish {cur.tag} to the website, integrations and distributions?", default=False
    ):
        _exit("aborted", code=ErrorCode.USER_ERROR)

    try:
        code = _run_full(
            console=console,
            cfg=cfg,
            env=env,
            creds=creds.value,
            source_root=source_root,
            html_dir=html_dir if not isinstance(rendered, Err) else None,
            version=cur,
            distros=distros,
            skip_integrations=skip_integrations,
            skip_milestones=skip_milestones,
        )
    except GitFatalError as e:
        _exit(str(e), code=ErrorCode.ENV_ERROR)

    if not code.is_success:
        raise typer.Exit(code=int(code))
    console.success("Done")


def _run_full(
    *,
    console: ConsoleProtocol,
    cfg: Config,
    env: Environment,
    creds: Credentials,
    source_root: Path,
    html_dir: Path | None,
    version: Version,
    distros: tuple[str, ...],
    skip_integrations: bool,
    skip_milestones: bool,
) -> ErrorCode:
    """Website, milestones, integrations, distributions, in that order."""
    project = cfg.project
    ok = True

    if html_dir is not None:
        website = GitRepository(html_dir, default_branch=project.default_branch)
        published = publish_website(website, version, console, branch=project.default_branch)
        if isinstance(published, Err):
            console.error(f"Failed to publish website: {published.error}")

    client = GitHubClient(
        token=creds.token,
        owner=project.owner,
        repo=project.repo,
        cwd=source_root,
        console=console,
    )

    if not skip_milestones:
        console.newline()
        console.header("Milestones")
        created = client.create_milestones(version.bump_patch())
        if isinstance(created, Err):
            console.error(f"Failed to create milestones: {created.error}")

    if not skip_integrations and cfg.integrations:
        go_r = detect_go_version(source_root)
        if isinstance(go_r, Err):
            console.error(f"Cannot detect Go version: {go_r.error}")
            ok = False
        else:
            runner = IntegrationRunner(
                project=project,
                version=version,
                source_root=source_root,
                go_version=go_r.value,
                console=console,
            )
            report = Dispatcher(
                integration_targets(cfg.integrations, source_root=source_root),
                runner,
                console=console,
                label="Integration",
            ).dispatch()
            console.newline()
            _print_report(console, "Integration", report)
            ok = ok and report.ok

    if not distros:
        return ErrorCode.OK if ok else ErrorCode.UPDATE_ERROR

    console.newline()
    console.header("Distributions")
    v = str(version)
    artifacts = fetch_release_artifacts(
        release_url=project.release_url(v), archive_url=project.archive_url(v)
    )
    if isinstance(artifacts, Err):
        console.error(f"Failed to get release checksums, skipping distributions: {artifacts.error}")
        return ErrorCode.NETWORK_ERROR
    console.success(f"Checksums for {version.tag} computed")

    targets = distro_targets(
        distros, project=project, version=version, artifacts=artifacts.value, env=env
    )
    if isinstance(targets, Err):
        console.error(targets.error)
        return ErrorCode.USER_ERROR

    resolved = [replace(t, work_dir=_under(source_root, t.work_dir)) for t in targets.value]
    report = Dispatcher(
        resolved,
        DistroRunner(project=project, version=version, credentials=creds, console=console),
        console=console,
        submitter=client,
        label="Distro",
    ).dispatch()
    console.newline()
    _print_report(console, "Distro", report)
    return ErrorCode.OK if ok and report.ok else ErrorCode.UPDATE_ERROR


def main() -> None:
    app()
