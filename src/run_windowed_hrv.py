#!/usr/bin/env python3
"""
Windowed HRV Analysis

This script analyzes the HRV of an ECG record window by window:
1. Split the record into windows of the requested length
2. Detect R-peaks and RR intervals per window
3. Filter RR intervals to NN intervals (windows without any are skipped)
4. Compute time-domain, frequency-domain, nonlinear and fragmentation metrics
5. Summarize every metric over all windows

Usage:
    python src/run_windowed_hrv.py --record data/mitdb/100
    python src/run_windowed_hrv.py --record data/mitdb/100 --window-minutes 10 --offset 1 --limit 2
    python src/run_windowed_hrv.py --record session.csv --params canine --output-csv hrv.csv

Output:
    Metrics and statistics tables printed to stdout (and optionally CSV files),
    per-window figures unless --no-plot, an HTML spectrum report with --spectrum-html.
"""

import argparse
import math
import sys
from pathlib import Path

# Ensure this script works when executed from any CWD.
sys.path.insert(0, str(Path(__file__).resolve().parent))

from windowed_hrv.errors import WindowedHRVError
from windowed_hrv.options import RunMode
from windowed_hrv.pipeline import run_windowed_hrv
from windowed_hrv.presentation import write_spectrum_report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Windowed HRV analysis of an ECG record",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Whole record as a single window
    python src/run_windowed_hrv.py --record data/mitdb/100

    # 2nd and 3rd ten-minute windows, no figures
    python src/run_windowed_hrv.py --record data/mitdb/100 -w 10 --offset 1 --limit 2 --no-plot
        """
    )

    parser.add_argument("--record", "-r", required=True,
                        help="WFDB record name (without extension) or CSV file")
    parser.add_argument("--channel", "-c", type=int, default=None,
                        help="ECG channel index (default: auto-detect)")
    parser.add_argument("--window-minutes", "-w", type=float, default=math.inf,
                        help="Window length in minutes (default: whole record)")
    parser.add_argument("--offset", type=int, default=0,
                        help="Number of windows to skip from the start")
    parser.add_argument("--limit", type=int, default=None,
                        help="Maximal number of windows to process")
    parser.add_argument("--params", "-p", default="",
                        help="Parameter profile name (human, canine, rabbit, mouse) or JSON file")
    parser.add_argument("--plot", dest="plot", action="store_true", default=None,
                        help="Draw per-window figures")
    parser.add_argument("--no-plot", dest="plot", action="store_false",
                        help="Do not draw figures")
    parser.add_argument("--output-csv", type=Path, default=None,
                        help="Write the metrics table to this CSV file")
    parser.add_argument("--stats-csv", type=Path, default=None,
                        help="Write the statistics table to this CSV file")
    parser.add_argument("--spectrum-html", type=Path, default=None,
                        help="Write an HTML page with the spectrum of every window")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Suppress progress messages")

    args = parser.parse_args(argv)

    writes_output = any(p is not None for p in (args.output_csv, args.stats_csv, args.spectrum_html))
    mode = RunMode.COMPUTE if writes_output else RunMode.COMPUTE_AND_DISPLAY

    try:
        result = run_windowed_hrv(
            args.record,
            ecg_channel=args.channel,
            window_minutes=args.window_minutes,
            window_index_offset=args.offset,
            window_index_limit=args.limit,
            params=args.params,
            plot=args.plot,
            mode=mode,
            verbose=not args.quiet,
        )
    except WindowedHRVError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output_csv is not None:
        args.output_csv.parent.mkdir(parents=True, exist_ok=True)
        result.metrics.to_csv(args.output_csv)
        print(f"Metrics saved to: {args.output_csv}")
    if args.stats_csv is not None:
        args.stats_csv.parent.mkdir(parents=True, exist_ok=True)
        result.stats.to_csv(args.stats_csv)
        print(f"Statistics saved to: {args.stats_csv}")
    if args.spectrum_html is not None:
        out = write_spectrum_report(result, args.spectrum_html)
        print(f"Spectrum report saved to: {out}")

    if result.run_config.plot and result.plot_datas:
        import matplotlib.pyplot as plt
        plt.show()

    return 0


if __name__ == "__main__":
    sys.exit(main())
