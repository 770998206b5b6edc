"""
PEELCAL Command Line Interface.
"""

import argparse
import sys
import os


def _add_common(parser, peeling=False):
    parser.add_argument('ms', help='Measurement Set path')
    parser.add_argument('--sources', '-s', required=True,
                        help='JSON file describing the sky model')
    parser.add_argument('--beam', '-b', default='sine',
                        help="Beam model: constant, sine or sine-<power> (default: sine)")
    parser.add_argument('--maxiter', type=int, default=None,
                        help='Maximum StefCal iterations per frequency channel (default: 20)')
    parser.add_argument('--tolerance', type=float, default=None,
                        help='Relative tolerance used to decide convergence (default: 1e-3)')
    parser.add_argument('--minuvw', type=float, default=None,
                        help='Minimum baseline length in wavelengths used by the solver (default: 0)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Solver threads (default: number of CPUs)')
    parser.add_argument('--config', '-c', default=None,
                        help='YAML file with solver settings; command line flags take precedence')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Print progress')
    if peeling:
        parser.add_argument('--peeliter', type=int, default=None,
                            help='Passes over the source list (default: 3)')
        parser.add_argument('--output', '-o', default=None,
                            help='HDF5 file for the per-direction calibrations (optional)')
    else:
        parser.add_argument('--output', '-o', required=True,
                            help='HDF5 file for the calibration (overwritten if it exists)')
        parser.add_argument('--force-imaging', action='store_true',
                            help='Create and write MODEL_DATA even if the MS does not have it')


def build_parser() -> argparse.ArgumentParser:
    """Argument parser with one subcommand per calibration command."""
    parser = argparse.ArgumentParser(
        description='PEELCAL - StefCal calibration and peeling for radio interferometers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  gaincal       Solve for diagonal gains
  polcal        Solve for full Jones matrices
  applycal      Apply a calibration to the MS
  peel          Peel sources (per channel, full Jones)
  zest          Peel sources (per channel, diagonal gains)
  shave         Peel sources (wideband, full Jones)
  prune         Peel sources (wideband, diagonal gains)

Examples:
  peelcal gaincal mydata.ms --sources sky.json --output gains.h5
  peelcal applycal mydata.ms --calibration gains.h5 --force-imaging
  peelcal peel mydata.ms --sources bright.json --peeliter 5 --minuvw 10
  peelcal shave mydata.ms --sources bright.json --output directions.h5 -v
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    _add_common(subparsers.add_parser('gaincal', help='Solve for a gain calibration'))
    _add_common(subparsers.add_parser('polcal', help='Solve for a polarization calibration'))

    applycal_parser = subparsers.add_parser('applycal', help='Apply a calibration')
    applycal_parser.add_argument('ms', help='Measurement Set path')
    applycal_parser.add_argument('--calibration', '-j', required=True,
                                 help='HDF5 calibration file from gaincal or polcal')
    applycal_parser.add_argument('--corrected', action='store_true',
                                 help='Apply to CORRECTED_DATA instead of DATA')
    applycal_parser.add_argument('--force-imaging', action='store_true',
                                 help='Write to CORRECTED_DATA, creating it if needed')
    applycal_parser.add_argument('--verbose', '-v', action='store_true',
                                 help='Print progress')

    _add_common(subparsers.add_parser('peel', help='Peel sources from the dataset'), peeling=True)
    _add_common(subparsers.add_parser('zest', help='Peel sources with diagonal gains'), peeling=True)
    _add_common(subparsers.add_parser('shave', help='Wideband peeling'), peeling=True)
    _add_common(subparsers.add_parser('prune', help='Wideband peeling with diagonal gains'),
                peeling=True)

    return parser


def config_from_args(args):
    """CalibrationConfig from an optional YAML file plus command line overrides."""
    from .pipeline.config_parser import CalibrationConfig, load_config

    base = load_config(args.config) if getattr(args, 'config', None) else None
    return CalibrationConfig.for_command(
        args.command,
        base=base,
        maxiter=getattr(args, 'maxiter', None),
        tolerance=getattr(args, 'tolerance', None),
        minuvw=getattr(args, 'minuvw', None),
        peeliter=getattr(args, 'peeliter', None),
        workers=getattr(args, 'workers', None),
    )


def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if not os.path.exists(args.ms):
        print(f"ERROR: MS not found: {args.ms}", file=sys.stderr)
        sys.exit(1)

    try:
        from .pipeline.runner import run_command

        run_command(
            args.command,
            args.ms,
            sources=getattr(args, 'sources', None),
            output=getattr(args, 'output', None),
            calibration=getattr(args, 'calibration', None),
            beam=getattr(args, 'beam', 'sine'),
            config=config_from_args(args),
            force_imaging=getattr(args, 'force_imaging', False),
            corrected=getattr(args, 'corrected', False),
            verbose=args.verbose,
        )
        sys.exit(0)

    except Exception as e:
        print(f"ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == '__main__':
    main()
