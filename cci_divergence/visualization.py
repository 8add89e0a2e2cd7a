"""
Chart output for scan results: price on top, smoothed CCI below, divergences marked.
"""
import os

from matplotlib.figure import Figure
import pandas as pd

COLORS = {
    'price': 'black',
    'cci': 'purple',
    'levels': 'gray',
    'extreme_levels': 'red',
    'bullish': 'green',
    'bearish': 'red'
}

FIGURE_SIZE = (14, 9)


def plot_divergence_lines(price_ax, cci_ax, bars, indicators, divergences):
    """Connect the two pivots of each divergence on both panels."""
    for d in divergences:
        color = COLORS['bullish'] if d.type.is_bullish else COLORS['bearish']
        price_col = 'low' if d.type.is_bullish else 'high'
        xs = [d.previous_index, d.index]

        price_ax.plot(xs, [bars[price_col].iloc[i] for i in xs],
                      color=color, linewidth=2, marker='o')
        cci_ax.plot(xs, [indicators.cci.iloc[i] for i in xs],
                    color=color, linewidth=2, marker='o')
        cci_ax.annotate(f"{d.type.value} {d.strength:.1f}", (d.index, d.oscillator_value),
                        textcoords='offset points', xytext=(5, 5), color=color, fontsize=8)


def plot_cci_levels(ax):
    for level in (100, -100):
        ax.axhline(level, color=COLORS['levels'], linestyle='--', alpha=0.7)
    for level in (200, -200):
        ax.axhline(level, color=COLORS['extreme_levels'], linestyle=':', alpha=0.6)
    ax.axhline(0, color=COLORS['levels'], linewidth=0.8, alpha=0.5)


def plot_divergences(symbol, bars, indicators, divergences, output_dir):
    """
    Save a price/CCI chart for one symbol.

    Returns:
        Path of the saved PNG
    """
    os.makedirs(output_dir, exist_ok=True)

    # Figure API instead of pyplot: charts are drawn from scanner worker threads
    fig = Figure(figsize=FIGURE_SIZE)
    price_ax, cci_ax = fig.subplots(2, 1, sharex=True, height_ratios=[3, 2])
    x = range(len(bars))

    price_ax.plot(x, bars['close'], label='Close', color=COLORS['price'], linewidth=1.5)
    price_ax.set_title(f'{symbol} Price')
    price_ax.grid(True, alpha=0.3)

    cci_ax.plot(x, indicators.cci, label='CCI', color=COLORS['cci'], linewidth=1.5)
    plot_cci_levels(cci_ax)
    cci_ax.set_title('Smoothed CCI')
    cci_ax.grid(True, alpha=0.3)

    plot_divergence_lines(price_ax, cci_ax, bars, indicators, divergences)

    if len(bars):
        last = pd.to_datetime(bars['timestamp'].iloc[-1], unit='ms', utc=True)
        price_ax.text(0.02, 0.98, f"Last bar: {last:%Y-%m-%d %H:%M} UTC",
                      transform=price_ax.transAxes, verticalalignment='top',
                      bbox=dict(boxstyle='round', facecolor='wheat', alpha=0.8))

    price_ax.legend(loc='upper left')
    cci_ax.legend(loc='upper left')
    fig.tight_layout()

    path = os.path.join(output_dir, f'{symbol}_cci_divergence.png')
    fig.savefig(path, dpi=150, bbox_inches='tight')
    return path
