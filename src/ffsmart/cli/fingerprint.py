"""ffsmart fingerprint command."""

import click

from ffsmart.hardware import HardwareFingerprinter


@click.command("fingerprint")
@click.option("--verbose", "-v", is_flag=True, help="List each detected device.")
def fingerprint_command(verbose: bool) -> None:
    """Print the canonical hardware fingerprint of this host.

    The fingerprint keys the capability cache; when it changes, the next
    probe benchmarks again.
    """
    fingerprint = HardwareFingerprinter().fingerprint()
    click.echo(fingerprint.canonical())
    if verbose:
        for device in fingerprint.devices:
            click.echo(f"  {device}")
