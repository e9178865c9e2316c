"""CLI commands for add-on preparation, image builds and live injection."""

import json

import typer
from rich.table import Table

from reddock.core.catalog import AddonCatalog, default_base_image
from reddock.core.injector import AddonInjector
from reddock.core.register import CERTIFICATION_URL, fetch_android_id
from reddock.core.runtime import ContainerRuntime
from reddock.exceptions import ImageBuildError, ReddockError
from reddock.models.inject import InjectRequest
from reddock.utils.host import get_host_arch
from reddock.utils.output import console

app = typer.Typer(no_args_is_help=True)

ARCH_HELP = "Target architecture (x86, x86_64, arm, arm64). Defaults to the host."


def _runtime() -> ContainerRuntime:
    runtime = ContainerRuntime()
    runtime.ensure_installed()
    return runtime


@app.command("list")
def list_addons(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON.",
    ),
) -> None:
    """List available add-ons and the Android versions they support."""
    console.set_json_mode(json_output)
    catalog = AddonCatalog()
    addons = [catalog.get(name) for name in catalog.list()]

    if json_output:
        output = [
            {
                "name": addon.key,
                "title": addon.name,
                "category": addon.category.value,
                "versions": list(addon.supported_versions()),
            }
            for addon in addons
        ]
        typer.echo(json.dumps(output, indent=2))
        return

    table = Table(title="Available Add-ons")
    table.add_column("Name", style="cyan")
    table.add_column("Title")
    table.add_column("Category", style="green")
    table.add_column("Android Versions")

    for addon in addons:
        table.add_row(
            addon.key,
            addon.name,
            addon.category.value,
            ", ".join(addon.supported_versions()),
        )

    console.print(table)


@app.command("versions")
def versions(
    addon: str = typer.Argument(..., help="Add-on name."),
) -> None:
    """Show the Android versions an add-on supports."""
    try:
        catalog = AddonCatalog()
        for version in catalog.supported_versions(addon):
            typer.echo(version)
    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("prepare")
def prepare(
    addon: str = typer.Argument(..., help="Add-on name."),
    version: str = typer.Argument(..., help="Android version (e.g. 11.0.0)."),
    arch: str = typer.Option(None, "--arch", "-a", help=ARCH_HELP),
    verify: bool = typer.Option(
        False,
        "--verify",
        help="Check downloaded archives against their recorded MD5 sums.",
    ),
) -> None:
    """Download and stage an add-on without building or injecting."""
    arch = arch or get_host_arch()

    try:
        catalog = AddonCatalog(verify_checksums=verify or None)
        with console.task(
            f"Preparing {addon} for Android {version} ({arch})...",
            done=f"{addon} prepared",
            failed=f"Failed to prepare {addon}",
        ) as progress:
            staged = catalog.prepare(addon, version, arch, progress)

        console.print_info(f"Staged files: {staged}")

    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("dockerfile")
def dockerfile(
    version: str = typer.Argument(..., help="Android version (e.g. 11.0.0)."),
    addons: list[str] = typer.Argument(..., help="Add-ons to include."),
    base: str = typer.Option(
        None,
        "--base",
        "-b",
        help="Base image (default: redroid/redroid:<version>-latest).",
    ),
    arch: str = typer.Option(None, "--arch", "-a", help=ARCH_HELP),
) -> None:
    """Print the image recipe for a set of add-ons without building."""
    arch = arch or get_host_arch()
    base = base or default_base_image(version)

    try:
        catalog = AddonCatalog()
        typer.echo(
            catalog.build_dockerfile(base, addons)
            + catalog.boot_directive(version, arch, addons),
            nl=False,
        )
    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("build")
def build(
    image: str = typer.Argument(..., help="Target image name (NAMESPACE/REPO[:TAG])."),
    version: str = typer.Argument(..., help="Android version (e.g. 11.0.0)."),
    addons: list[str] = typer.Argument(..., help="Add-ons to include."),
    base: str = typer.Option(
        None,
        "--base",
        "-b",
        help="Base image (default: redroid/redroid:<version>-latest).",
    ),
    arch: str = typer.Option(None, "--arch", "-a", help=ARCH_HELP),
    push: bool = typer.Option(False, "--push", help="Push the image after building."),
) -> None:
    """Build a custom redroid image with add-ons baked in.

    The staging root is removed afterwards, whether or not the build succeeded.
    """
    arch = arch or get_host_arch()
    base = base or default_base_image(version)
    catalog: AddonCatalog | None = None

    try:
        catalog = AddonCatalog(runtime=_runtime())

        with console.task(
            "Preparing add-ons...",
            done="Build context ready",
            failed="Failed to prepare build context",
        ) as progress:
            result = catalog.prepare_build_context(
                base, image, version, arch, addons, progress
            )

        console.print("\n[bold]Dockerfile:[/bold]")
        console.print(result.dockerfile, markup=False, highlight=False)

        with console.task(
            f"Building {image}...",
            done=f"Successfully built {image}",
            failed=f"Failed to build {image}",
        ):
            catalog.build_image(result)

        if push:
            with console.task(
                f"Pushing {image}...",
                done=f"Pushed {image}",
                failed=f"Failed to push {image}",
            ):
                catalog.push_image(image)

        if result.skipped:
            console.print_warning(f"Built without: {', '.join(result.skipped)}")

    except ImageBuildError as e:
        if e.output:
            console.print(e.output, markup=False, highlight=False)
        console.print_error(str(e))
        raise typer.Exit(1) from None
    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None
    finally:
        if catalog is not None:
            catalog.cleanup()


def _warn_missing_tools(injector: AddonInjector) -> None:
    missing = injector.missing_tools()
    if missing:
        console.print_warning(
            f"Missing archive tools: {', '.join(missing)}. "
            "Some add-ons may fail to extract."
        )


@app.command("inject")
def inject(
    container: str = typer.Argument(..., help="Running container name."),
    addon: str = typer.Argument(..., help="Add-on name."),
    version: str = typer.Argument(..., help="Android version of the container."),
    arch: str = typer.Option(None, "--arch", "-a", help=ARCH_HELP),
) -> None:
    """Install an add-on into a running container."""
    arch = arch or get_host_arch()

    try:
        injector = AddonInjector(runtime=_runtime())
        _warn_missing_tools(injector)

        with console.task(
            f"Injecting {addon} into {container}...",
            done=f"{addon} injected into {container}",
            failed=f"Failed to inject {addon}",
        ) as progress:
            result = injector.inject_to_container(
                container, addon, version, arch, progress
            )

        console.print_info(f"Copied: {', '.join(result.copied) or '-'}")
        console.print_info(f"Restart the container to apply: docker restart {container}")

    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("inject-multi")
def inject_multi(
    container: str = typer.Argument(..., help="Running container name."),
    version: str = typer.Argument(..., help="Android version of the container."),
    addons: list[str] = typer.Argument(..., help="Add-ons to inject, in order."),
    arch: str = typer.Option(None, "--arch", "-a", help=ARCH_HELP),
) -> None:
    """Install several add-ons into a running container, continuing past failures."""
    arch = arch or get_host_arch()
    requests = [InjectRequest(name=name, version=version, arch=arch) for name in addons]

    try:
        injector = AddonInjector(runtime=_runtime())
        _warn_missing_tools(injector)

        with console.task(
            f"Injecting {len(requests)} add-on(s) into {container}...",
            done="Injection finished",
            failed="Injection aborted",
        ) as progress:
            report = injector.inject_multiple(container, requests, progress)

    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None

    table = Table(title=f"Injection Results ({container})")
    table.add_column("Add-on", style="cyan")
    table.add_column("Status")
    table.add_column("Details")

    for result in report.results:
        if result.success:
            details = "; ".join(result.warnings) or "-"
            table.add_row(result.name, "[green]injected[/green]", details)
        else:
            table.add_row(result.name, "[red]failed[/red]", result.error or "-")

    console.print(table)

    if not report.ok:
        console.print_error(
            f"{len(report.failed)} of {len(report.results)} add-on(s) failed"
        )
        raise typer.Exit(1)

    console.print_info(f"Restart the container to apply: docker restart {container}")


@app.command("register")
def register(
    container: str = typer.Argument(..., help="Running container with GApps."),
) -> None:
    """Print the GSF Android ID for Google device certification."""
    try:
        runtime = _runtime()
        if not runtime.is_running(container):
            console.print_error(f"Container '{container}' is not running")
            raise typer.Exit(1)

        android_id = fetch_android_id(runtime, container)

        console.print_success(f"Android ID: [bold]{android_id}[/bold]")
        console.print(f"\nRegister it at {CERTIFICATION_URL}")
        console.print("Then wait a few minutes and clear Google Play Services data.")

    except ReddockError as e:
        console.print_error(str(e))
        raise typer.Exit(1) from None


@app.command("clean")
def clean() -> None:
    """Remove all downloaded and staged add-on files."""
    try:
        catalog = AddonCatalog()
        catalog.cleanup()
        console.print_success(f"Removed {catalog.staging_root}")
    except OSError as e:
        console.print_error(f"Cleanup failed: {e}")
        raise typer.Exit(1) from None
