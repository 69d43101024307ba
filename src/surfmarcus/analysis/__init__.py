from surfmarcus.analysis.voltammetry import (
    faradaic_charge,
    peak_metrics,
    sample_square_wave,
    square_wave_voltammogram,
)

__all__ = [
    "faradaic_charge",
    "peak_metrics",
    "sample_square_wave",
    "square_wave_voltammogram",
]
