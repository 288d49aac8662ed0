"""CLI interface for ccprof."""

from __future__ import annotations

import functools
import logging
import sys

import click

from ccprof import __version__
from ccprof.components import COMPONENTS
from ccprof.components import get_component
from ccprof.components import in_registry_order
from ccprof.components import parse_components
from ccprof.config import Settings
from ccprof.config import save_settings
from ccprof.diff import TreeDiff
from ccprof.diff import format_value
from ccprof.doctor import Severity
from ccprof.exceptions import ProfileError
from ccprof.fs import Disposition
from ccprof.fs import read_json
from ccprof.manager import ProfileManager
from ccprof.paths import resolve_paths
from ccprof.profiles import ComponentSource
from ccprof.switch import SwitchReport


def styled(text: str, **kwargs) -> str:
    return click.style(text, **kwargs)


def info(msg: str) -> None:
    click.echo(f"  {msg}")


def success(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='green')}")


def warn(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='yellow')}")


def error(msg: str) -> None:
    click.echo(f"  {styled(msg, fg='red')}")


def heading(msg: str) -> None:
    click.echo(f"\n  {styled(msg, bold=True)}")


def handle_errors(func):
    """Print ProfileError messages and exit non-zero instead of tracing back."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ProfileError as e:
            error(str(e))
            sys.exit(1)

    return wrapper


def get_manager(ctx: click.Context) -> ProfileManager:
    ctx.ensure_object(dict)
    if "manager" not in ctx.obj:
        ctx.obj["manager"] = ProfileManager(resolve_paths())
    return ctx.obj["manager"]


def split_components(value: str | None) -> list[str] | None:
    if value is None:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


@click.group()
@click.version_option(version=__version__, prog_name="ccprof")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Switch between Claude Code configuration profiles."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command("list")
@click.pass_context
@handle_errors
def list_cmd(ctx: click.Context) -> None:
    """List all profiles."""
    manager = get_manager(ctx)
    profiles = manager.list_profiles()

    if not profiles:
        warn("No profiles found.")
        info("Create one with: ccprof add <name>")
        return

    active = manager.read_active_state().active_profile

    heading("Profiles")
    click.echo()
    for profile in profiles:
        marker = styled("*", fg="green") if profile.name == active else " "
        components = ",".join(c.name for c in profile.components) or "?"
        if profile.name == active:
            status = styled("active", fg="green")
        elif not profile.valid:
            status = styled("invalid", fg="red")
        elif profile.legacy:
            status = styled("legacy", fg="yellow")
        else:
            status = "-"
        info(f"{marker} {profile.name:<24} {components:<34} {status}")
    click.echo()


@cli.command()
@click.pass_context
@handle_errors
def current(ctx: click.Context) -> None:
    """Show the active profile and where each live component points."""
    manager = get_manager(ctx)
    state = manager.read_active_state()

    heading("Current profile")
    click.echo()
    if state.active_profile:
        info(f"Selected profile: {styled(state.active_profile, bold=True)}")
        if state.last_switched_at:
            info(f"Last switched:    {state.last_switched_at:%Y-%m-%d %H:%M:%S %Z}")
    else:
        info("Selected profile: (none)")

    click.echo()
    for status in manager.live_status():
        entry = status.entry
        if entry.disposition is Disposition.ABSENT:
            desc = styled("missing", fg="yellow")
        elif entry.disposition is Disposition.REGULAR:
            desc = "regular " + ("directory" if entry.is_dir else "file")
        elif entry.disposition is Disposition.BROKEN_SYMLINK:
            desc = styled(f"broken symlink -> {entry.target}", fg="red")
        elif status.profile:
            desc = f"symlink -> {styled(status.profile, fg='green')}"
        else:
            desc = styled(f"symlink outside profiles -> {entry.target}", fg="yellow")
        info(f"{status.component.display_name + ':':<10} {desc}")
    click.echo()


@cli.command()
@click.argument("name")
@click.pass_context
@handle_errors
def inspect(ctx: click.Context, name: str) -> None:
    """Show details about a profile."""
    manager = get_manager(ctx)
    profile = manager.read_profile(name)

    heading(f"Profile: {name}")
    click.echo()
    info(f"Path:     {profile.path}")
    if profile.metadata is None:
        error(f"Metadata unreadable: {profile.problems[0]}")
        return

    info(f"Created:  {profile.metadata.created_at:%Y-%m-%d %H:%M:%S}")
    if profile.metadata.updated_at:
        info(f"Updated:  {profile.metadata.updated_at:%Y-%m-%d %H:%M:%S}")
    if profile.legacy:
        warn("No metadata.json: legacy profile tracking settings only. Use 'edit --track' to migrate it.")
    else:
        info(f"Schema:   {profile.metadata.schema_version}")

    heading("Tracked components")
    click.echo()
    for component in profile.components:
        path = profile.component_path(component)
        if path.exists():
            size = path.stat().st_size if path.is_file() else sum(
                f.stat().st_size for f in path.rglob("*") if f.is_file()
            )
            info(f"{component.display_name:<10} {path}  ({format_bytes(size)})")
        else:
            info(f"{component.display_name:<10} {path}  {styled('missing', fg='red')}")

    for problem in profile.problems:
        warn(problem)
    click.echo()


@cli.command()
@click.argument("name")
@click.option(
    "--components",
    "-c",
    default=None,
    help="Comma-separated components to track (settings,agents,hooks,commands).",
)
@click.option("--empty", is_flag=True, help="Start with empty components instead of copying current ones.")
@click.pass_context
@handle_errors
def add(ctx: click.Context, name: str, components: str | None, empty: bool) -> None:
    """Create a profile from the current configuration."""
    manager = get_manager(ctx)

    selected = split_components(components)
    if selected is None:
        present = [s.component.name for s in manager.live_status() if s.entry.disposition is not Disposition.ABSENT]
        default = ",".join(present or manager.settings.default_components)
        info(f"Available components: {', '.join(c.name for c in COMPONENTS)}")
        selected = split_components(click.prompt("  Components to track", default=default))

    source = ComponentSource.EMPTY if empty else ComponentSource.LIVE
    profile = manager.create_profile(name, selected, source)

    success(f"Created profile '{profile.name}'")
    for component in profile.components:
        info(f"  + {component.display_name}")
    click.echo()
    info(f"To activate it: ccprof use {profile.name}")


def print_switch_report(report: SwitchReport) -> None:
    for result in report.results:
        if result.ok:
            line = f"{result.component.display_name}: {result.action.value}"
            if result.backup:
                line += f" (backup {result.backup.id})"
            info(line)
        else:
            error(f"{result.component.display_name}: {result.error}")


@cli.command()
@click.argument("name")
@click.pass_context
@handle_errors
def use(ctx: click.Context, name: str) -> None:
    """Switch to a profile."""
    manager = get_manager(ctx)
    report = manager.switch_to(name)

    print_switch_report(report)
    if not report.ok:
        error(f"Switch to '{name}' incomplete: {len(report.failed)} of {len(report.results)} component(s) failed.")
        info("Fix the problem and run the command again; 'ccprof doctor' shows the current state.")
        sys.exit(1)
    success(f"Active profile: {name}")


@cli.command()
@click.argument("name")
@click.option("--component", "-c", default=None, help="Component to open (default: settings).")
@click.option("--track", default=None, help="Replace the tracked components (comma-separated).")
@click.pass_context
@handle_errors
def edit(ctx: click.Context, name: str, component: str | None, track: str | None) -> None:
    """Open a profile component in your editor, or change what it tracks."""
    manager = get_manager(ctx)

    if track is not None:
        profile = manager.set_tracked_components(name, split_components(track))
        success(f"Profile '{name}' now tracks: {', '.join(c.name for c in profile.components)}")
        return

    profile = manager.read_profile(name)
    target = get_component(component or "settings")
    if target not in profile.components:
        error(f"Profile '{name}' does not track {target.name}.")
        sys.exit(1)

    path = profile.component_path(target)
    if target.is_dir:
        click.launch(str(path))
        success(f"Opened {path}")
        return

    click.edit(filename=str(path))
    if target.is_json:
        try:
            read_json(path)
        except ProfileError as e:
            warn(str(e))
            return
    success(f"Edited {path}")


@cli.command()
@click.argument("old_name")
@click.argument("new_name")
@click.pass_context
@handle_errors
def rename(ctx: click.Context, old_name: str, new_name: str) -> None:
    """Rename a profile."""
    manager = get_manager(ctx)
    report = manager.rename_profile(old_name, new_name)

    if report is None:
        success(f"Renamed profile '{old_name}' to '{new_name}'")
        return
    print_switch_report(report)
    if not report.ok:
        error(f"Renamed '{old_name}' to '{new_name}' but some links could not be updated.")
        info(f"Run: ccprof use {new_name}")
        sys.exit(1)
    success(f"Renamed profile '{old_name}' to '{new_name}' (symlinks updated)")


@cli.command()
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Allow removing the active profile.")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
@handle_errors
def remove(ctx: click.Context, name: str, force: bool, yes: bool) -> None:
    """Remove a profile."""
    manager = get_manager(ctx)
    manager.read_profile(name)

    if not yes and not click.confirm(f"  Remove profile '{name}' and all its content?", default=False):
        warn("Removal cancelled.")
        return

    manager.remove_profile(name, force=force)
    success(f"Removed profile '{name}'")


@cli.command()
@click.argument("profile1")
@click.argument("profile2")
@click.option("--component", "-c", default="settings", help="Component to compare.")
@click.pass_context
@handle_errors
def diff(ctx: click.Context, profile1: str, profile2: str, component: str) -> None:
    """Compare a component between two profiles."""
    manager = get_manager(ctx)
    result = manager.diff_profiles(profile1, profile2, component)

    heading(f"Comparing {component} between '{profile1}' and '{profile2}'")
    click.echo()

    if isinstance(result, TreeDiff):
        if result.identical:
            success("Directories are identical.")
            return
        for path in result.only_left:
            info(f"- {path} (only in {profile1})")
        for path in result.only_right:
            info(f"+ {path} (only in {profile2})")
        for patch in result.patches:
            click.echo(patch)
        return

    if not result:
        success("Settings are identical.")
        return
    for change in result:
        info(f"{change.key}: {format_value(change.left)} -> {format_value(change.right)}")
    click.echo()
    info(f"{len(result)} difference(s)")


@cli.command()
@click.pass_context
@handle_errors
def doctor(ctx: click.Context) -> None:
    """Check profiles, live links and state for problems."""
    manager = get_manager(ctx)
    report = manager.run_diagnostics()

    heading("ccprof doctor")
    click.echo()
    info(f"Checked {report.profiles_checked} profile(s)")
    if not report.findings:
        success("No problems found.")
        return

    for finding in report.findings:
        msg = f"[{finding.kind.value}] {finding.message}"
        if finding.severity is Severity.ERROR:
            error(msg)
        else:
            warn(msg)
    if not report.ok:
        sys.exit(1)


@cli.command("config")
@click.option("--retention", type=click.IntRange(min=1), default=None, help="Backups to keep per component.")
@click.option("--default-components", default=None, help="Comma-separated components 'add' tracks by default.")
@click.pass_context
@handle_errors
def config_cmd(ctx: click.Context, retention: int | None, default_components: str | None) -> None:
    """Show or change ccprof settings."""
    manager = get_manager(ctx)
    settings = manager.settings

    if retention is not None or default_components is not None:
        settings = Settings(
            version=settings.version,
            backup_retention=settings.backup_retention if retention is None else retention,
            default_components=(
                settings.default_components
                if default_components is None
                else [c.name for c in in_registry_order(parse_components(split_components(default_components)))]
            ),
        )
        save_settings(settings, manager.paths.config_file)
        manager.settings = settings
        success(f"Settings saved to {manager.paths.config_file}")

    heading("Settings")
    click.echo()
    info(f"Backup retention:   {settings.backup_retention} per component")
    info(f"Default components: {', '.join(settings.default_components)}")
    click.echo()


@cli.group()
def backup() -> None:
    """Manage backups taken when switching profiles."""


@backup.command("list")
@click.option("--component", "-c", default=None, help="Only show backups of this component.")
@click.pass_context
@handle_errors
def backup_list(ctx: click.Context, component: str | None) -> None:
    """List backups, newest first."""
    manager = get_manager(ctx)
    records = manager.list_backups(component)

    if not records:
        warn("No backups found.")
        info("Backups are created automatically when switching profiles.")
        return

    heading("Backups")
    click.echo()
    for record in reversed(records):
        info(
            f"{record.id:<48} {record.component.display_name:<10} "
            f"{record.timestamp:%Y-%m-%d %H:%M:%S}  {format_bytes(record.size)}"
        )
    click.echo()
    info(f"{len(records)} backup(s) found")


@backup.command("restore")
@click.argument("backup_id")
@click.option("--overwrite", is_flag=True, help="Replace live content that differs from the backup.")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
@handle_errors
def backup_restore(ctx: click.Context, backup_id: str, overwrite: bool, yes: bool) -> None:
    """Restore a backup to the live config directory."""
    manager = get_manager(ctx)
    record = manager.backups.get(backup_id)
    target = manager.paths.live_path(record.component)

    if not yes and not click.confirm(f"  Restore '{backup_id}' to {target}?", default=False):
        warn("Restore cancelled.")
        return

    safety = manager.restore_backup(backup_id, overwrite=overwrite)
    if safety:
        info(f"Previous content saved as {safety.id}")
    success(f"Restored '{backup_id}' to {target}")


@backup.command("clean")
@click.option("--keep", type=click.IntRange(min=0), default=None, help="Backups to keep per component.")
@click.pass_context
@handle_errors
def backup_clean(ctx: click.Context, keep: int | None) -> None:
    """Delete old backups, keeping the newest per component."""
    manager = get_manager(ctx)
    keep = manager.settings.backup_retention if keep is None else keep
    removed = manager.rotate_backups(keep=keep)

    if removed:
        success(f"Removed {len(removed)} old backup(s), keeping {keep} per component")
    else:
        success(f"No backups to clean (keeping {keep} per component)")


def format_bytes(size: float) -> str:
    if size < 1024:
        return f"{int(size)} B"
    for unit in ("KB", "MB", "GB"):
        size /= 1024
        if size < 1024 or unit == "GB":
            break
    return f"{size:.1f} {unit}"
