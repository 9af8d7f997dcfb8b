"""CLI commands for gamewatch."""

import click


@click.group()
@click.version_option(package_name="gamewatch")
def main() -> None:
    """Detect when a game or its tools are running."""
    pass


@main.command()
def watch() -> None:
    """Watch the configured game and tools until interrupted."""
    import asyncio

    from gamewatch.monitor import run_monitor

    asyncio.run(run_monitor())


@main.command()
@click.option("--root", "root_pid", type=int, default=None, help="Ancestry root PID (default: parent of this command)")
def check(root_pid: int | None) -> None:
    """Run a single check and show what is running."""
    import os

    from gamewatch.config import Config
    from gamewatch.monitor import ProcessMonitor
    from gamewatch.store import MemoryStateStore

    config = Config.load()
    targets = config.targets()
    if not targets:
        click.echo("No game configured.")
        return

    root = root_pid if root_pid is not None else os.getppid()
    store = MemoryStateStore()
    monitor = ProcessMonitor(store, config, config=config, root_pid=root)
    if not monitor.supported:
        click.echo("Process monitoring is not supported on this platform.")
        return

    monitor.check()
    running = store.known_running()
    for target in targets:
        entry = running.get(target.executable_path)
        if entry is None:
            click.echo(f"  stopped  {target.executable_path}")
        else:
            click.echo(f"  running  {target.executable_path} (PID {entry.pid})")


@main.command()
@click.argument("name", required=False)
@click.option("--root", "root_pid", type=int, default=None, help="Mark descendants of this PID")
def processes(name: str | None, root_pid: int | None) -> None:
    """List processes, optionally only those named NAME."""
    import os

    from gamewatch.backends import select_backend
    from gamewatch.tree import exe_identity, is_descendant_of

    backend = select_backend()
    if backend is None:
        click.echo("Process monitoring is not supported on this platform.")
        return

    try:
        snapshot = backend.enumerator.list_processes()
    except OSError as e:
        click.echo(f"Failed to list processes: {e}", err=True)
        raise SystemExit(1) from e
    records = snapshot.candidates(name) if name else list(snapshot.records)
    if not records:
        click.echo(f"No processes named {exe_identity(name)}." if name else "No processes.")
        return

    root = root_pid if root_pid is not None else os.getppid()
    click.echo(f"{'PID':>7}  {'PPID':>7}  {'Child':5}  Name")
    click.echo("-" * 50)
    for proc in sorted(records, key=lambda r: r.pid):
        child = "yes" if is_descendant_of(proc, root, snapshot) else ""
        click.echo(f"{proc.pid:>7}  {proc.ppid:>7}  {child:5}  {proc.exe_name}")


@main.group()
def config() -> None:
    """Configuration management."""
    pass


@config.command("show")
def config_show() -> None:
    """Display current configuration."""
    from gamewatch.config import Config

    cfg = Config.load()

    click.echo(f"Config file: {cfg.config_path}")
    click.echo(f"Exists: {cfg.config_path.exists()}")
    click.echo()
    click.echo("[polling]")
    click.echo(f"  focused_interval = {cfg.polling.focused_interval}")
    click.echo(f"  unfocused_interval = {cfg.polling.unfocused_interval}")
    click.echo()
    click.echo("[game]")
    click.echo(f"  name = {cfg.game.name}")
    click.echo(f"  executable = {cfg.game.executable}")
    click.echo(f"  path = {cfg.game.path}")
    for tool_id, tool in cfg.tools.items():
        click.echo()
        click.echo(f"[tools.{tool_id}]")
        click.echo(f"  path = {tool.path}")
        click.echo(f"  exclusive = {str(tool.exclusive).lower()}")
        click.echo(f"  detached = {str(tool.detached).lower()}")


@config.command("edit")
def config_edit() -> None:
    """Open config file in editor."""
    import os
    import subprocess

    from gamewatch import logging as console
    from gamewatch.config import Config

    cfg = Config.load()

    if not cfg.config_path.exists():
        cfg.save()
        console.config_created(str(cfg.config_path))

    editor = os.environ.get("EDITOR", "nano")
    subprocess.run([editor, str(cfg.config_path)])


@config.command("reset")
@click.confirmation_option(prompt="Reset configuration to defaults?")
def config_reset() -> None:
    """Reset configuration to defaults."""
    from gamewatch.config import Config

    cfg = Config()
    cfg.save()
    click.echo(f"Config reset to defaults at {cfg.config_path}")


if __name__ == "__main__":
    main()
