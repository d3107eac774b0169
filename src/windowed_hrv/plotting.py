"""Matplotlib renderers for the per-window plot data bundles.

Every function draws into a given ``Axes`` and returns nothing; figure
creation and layout are left to the caller (see ``presentation``).
"""

from __future__ import annotations

from typing import Any, Dict

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.axes import Axes
from matplotlib.patches import Ellipse
import seaborn as sns


BAND_COLORS = {"VLF": "#7f7f7f", "LF": "#1f77b4", "HF": "#d62728"}


def plot_ecgrr(ax: Axes, pd_ecgrr: Dict[str, Any]) -> None:
    """ECG excerpt with detected R-peaks."""
    t = pd_ecgrr["time"]
    ecg = pd_ecgrr["ecg"]
    peaks = pd_ecgrr["peak_indices"]
    ax.plot(t, ecg, lw=0.8, color="#333333", label="ECG (filtered)")
    if len(peaks):
        ax.plot(t[peaks], ecg[peaks], "rv", ms=5, label="R-peaks")
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("ECG (mV)")
    ax.legend(loc="upper right")


def plot_filtrr(ax: Axes, pd_filtrr: Dict[str, Any]) -> None:
    """Raw RR intervals and the NN intervals kept by the filter."""
    ax.plot(pd_filtrr["trr"], pd_filtrr["rri"], ".", color="#bbbbbb", label="RR")
    if len(pd_filtrr["tnn"]):
        ax.plot(pd_filtrr["tnn"], pd_filtrr["nni"], "-", lw=0.9, color="#1f77b4", label="NN")
    removed = sum(pd_filtrr["removed"].values())
    ax.set_title(f"{removed} of {pd_filtrr['n_rr']} intervals removed", fontsize=9)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Interval (ms)")
    ax.legend(loc="upper right")


def plot_poincare_ellipse(ax: Axes, pd_poincare: Dict[str, Any]) -> None:
    """Poincaré plot (NN[i] vs NN[i+1]) with the SD1/SD2 ellipse."""
    nn = np.asarray(pd_poincare["nni"])
    if nn.size < 2:
        ax.text(0.5, 0.5, "Not enough intervals", ha="center", transform=ax.transAxes)
        return
    ax.plot(nn[:-1], nn[1:], ".", ms=3, alpha=0.6, color="#1f77b4")
    sd1, sd2 = pd_poincare["sd1"], pd_poincare["sd2"]
    if np.isfinite(sd1) and np.isfinite(sd2):
        center = float(np.mean(nn))
        ax.add_patch(Ellipse((center, center), width=4 * sd2, height=4 * sd1, angle=45,
                             fill=False, color="#d62728", lw=1.5,
                             label=f"SD1={sd1:.1f} ms, SD2={sd2:.1f} ms"))
        ax.legend(loc="upper left")
    lims = [nn.min(), nn.max()]
    ax.plot(lims, lims, "--", color="#999999", lw=0.8)
    ax.set_xlabel("NN(i) (ms)")
    ax.set_ylabel("NN(i+1) (ms)")
    ax.set_aspect("equal", adjustable="datalim")


def plot_hrv_time_hist(ax: Axes, pd_time: Dict[str, Any]) -> None:
    """Histogram of NN intervals."""
    nn = pd_time["nni"]
    if len(pd_time["bin_edges"]) < 2:
        ax.text(0.5, 0.5, "Not enough intervals", ha="center", transform=ax.transAxes)
        return
    sns.histplot(x=nn, bins=pd_time["bin_edges"], ax=ax, color="#1f77b4")
    ax.axvline(pd_time["mean_nn"], color="#d62728", lw=1.2,
               label=f"mean={pd_time['mean_nn']:.1f} ms, SDNN={pd_time['sdnn']:.1f} ms")
    ax.set_xlabel("NN interval (ms)")
    ax.set_ylabel("Count")
    ax.legend(loc="upper right")


def plot_hrv_freq_spectrum(
    ax: Axes,
    pd_freq: Dict[str, Any],
    detailed_legend: bool = False,
    peaks: bool = False,
) -> None:
    """PSD with shaded frequency bands; optionally band peaks and a detailed legend."""
    freqs, psd = pd_freq["freqs"], pd_freq["psd"]
    if len(freqs) == 0:
        ax.text(0.5, 0.5, "Window too short for spectrum", ha="center", transform=ax.transAxes)
        return
    ax.plot(freqs, psd, color="#333333", lw=1.0, label=f"PSD ({pd_freq['method']})")
    for name, (lo, hi) in pd_freq["bands"].items():
        label = f"{name} {lo:g}-{hi:g} Hz" if detailed_legend else name
        ax.axvspan(lo, hi, color=BAND_COLORS.get(name, "#cccccc"), alpha=0.15, label=label)
    if peaks:
        for key, color in (("lf_peak", BAND_COLORS["LF"]), ("hf_peak", BAND_COLORS["HF"])):
            f0 = pd_freq.get(key, np.nan)
            if np.isfinite(f0):
                ax.axvline(f0, color=color, ls="--", lw=1.0,
                           label=f"{key.split('_')[0].upper()} peak {f0:.3f} Hz")
    upper = max(hi for _, hi in pd_freq["bands"].values())
    ax.set_xlim(0, min(float(freqs[-1]), upper * 1.25))
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel("PSD (ms²/Hz)")
    ax.legend(loc="upper right", fontsize=8)


def plot_dfa_fn(ax: Axes, pd_dfa: Dict[str, Any]) -> None:
    """DFA fluctuation function on log-log axes."""
    n, fn = np.asarray(pd_dfa["n"]), np.asarray(pd_dfa["fn"])
    ok = np.isfinite(fn) & (fn > 0)
    ax.loglog(n[ok], fn[ok], "o", ms=4, color="#1f77b4")
    ax.set_title(f"DFA: α1={pd_dfa['alpha1']:.2f}, α2={pd_dfa['alpha2']:.2f}", fontsize=9)
    ax.set_xlabel("log(n)")
    ax.set_ylabel("log F(n)")


def plot_hrv_nl_beta(ax: Axes, pd_beta: Dict[str, Any]) -> None:
    """Low-frequency spectrum on log-log axes with its slope."""
    freqs, psd = np.asarray(pd_beta["freqs"]), np.asarray(pd_beta["psd"])
    ok = (freqs > 0) & (psd > 0)
    if np.any(ok):
        ax.loglog(freqs[ok], psd[ok], lw=0.8, color="#333333")
        lo, hi = pd_beta["band"]
        ax.axvspan(max(lo, float(freqs[ok][0])), hi, color="#7f7f7f", alpha=0.15)
    ax.set_title(f"β={pd_beta['beta']:.2f}", fontsize=9)
    ax.set_xlabel("log(f)")
    ax.set_ylabel("log PSD")


def plot_mse(ax: Axes, pd_mse: Dict[str, Any]) -> None:
    """Multiscale entropy curve."""
    ax.plot(pd_mse["scales"], pd_mse["values"], "o-", ms=4, color="#1f77b4")
    ax.set_xlabel("Scale")
    ax.set_ylabel("SampEn")


def new_figure(name: str, nrows: int = 1):
    """Create a titled figure with ``nrows`` stacked axes."""
    sns.set_theme(style="whitegrid")
    fig, axes = plt.subplots(nrows, 1, figsize=(8.0, 3.2 * nrows + 0.8), num=name, clear=True)
    fig.suptitle(name, fontsize=10)
    return fig, np.atleast_1d(axes)
