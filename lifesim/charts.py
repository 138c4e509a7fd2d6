import os
from typing import List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from .sim import Sim


def _line_chart(ticks, values, title: str, ylabel: str, color: str, path: str):
    plt.figure(figsize=(10, 6), dpi=150)
    plt.plot(ticks, values, lw=3, color=color)
    plt.title(title, fontsize=16, fontweight='bold')
    plt.xlabel("Tick", fontsize=12)
    plt.ylabel(ylabel, fontsize=12)
    plt.grid(True, alpha=0.3)
    plt.tight_layout()
    plt.savefig(path, dpi=150, bbox_inches='tight')
    plt.close()


def final_charts(sim: Sim, output_dir: Optional[str] = None) -> List[str]:
    """Save analysis charts for a finished run; returns the written file paths."""
    series = sim.series
    if not sim.metric_ticks:
        print("No simulation data to plot")
        return []

    output_dir = output_dir or sim.cfg.CHART_DIR
    os.makedirs(output_dir, exist_ok=True)
    ticks = np.asarray(sim.metric_ticks)
    n = len(ticks)
    written = []

    # 1. Population
    path = os.path.join(output_dir, "population_evolution.png")
    _line_chart(ticks, series["population"], f"Population Evolution - {n} Samples",
                "Number of Agents", '#1f77b4', path)
    written.append(path)

    # 2. Energy
    path = os.path.join(output_dir, "energy_evolution.png")
    _line_chart(ticks, series["avg_energy"], f"Average Energy Levels - {n} Samples",
                "Mean Energy", "#2ca02c", path)
    written.append(path)

    # 3. Aggression
    path = os.path.join(output_dir, "aggression_evolution.png")
    _line_chart(ticks, series["avg_aggression"], f"Aggression Level Evolution - {n} Samples",
                "Mean Aggression", '#9467bd', path)
    written.append(path)

    # 4. Births vs deaths (cumulative)
    plt.figure(figsize=(10, 6), dpi=150)
    plt.plot(ticks, series["births"], lw=3, color='#1f77b4', label="births")
    plt.plot(ticks, series["deaths"], lw=3, color="#d62728", label="deaths")
    plt.title(f"Births and Deaths - {n} Samples", fontsize=16, fontweight='bold')
    plt.xlabel("Tick", fontsize=12)
    plt.ylabel("Cumulative Count", fontsize=12)
    plt.legend()
    plt.grid(True, alpha=0.3)
    plt.tight_layout()
    path = os.path.join(output_dir, "births_deaths.png")
    plt.savefig(path, dpi=150, bbox_inches='tight')
    plt.close()
    written.append(path)

    # 5. Summary
    fig, ((ax1, ax2), (ax3, ax4)) = plt.subplots(2, 2, figsize=(12, 8), dpi=150)

    ax1.plot(ticks, series["population"], lw=2, color='#1f77b4')
    ax1.set_title("Population", fontweight='bold')
    ax1.set_xlabel("Tick")
    ax1.set_ylabel("Agents")
    ax1.grid(True, alpha=0.3)

    ax2.plot(ticks, series["avg_life"], lw=2, color="#d62728")
    ax2.set_title("Average Lifespan at Death", fontweight='bold')
    ax2.set_xlabel("Tick")
    ax2.set_ylabel("Ticks")
    ax2.grid(True, alpha=0.3)

    ax3.plot(ticks, series["avg_energy"], lw=2, color="#2ca02c")
    ax3.set_title("Mean Energy", fontweight='bold')
    ax3.set_xlabel("Tick")
    ax3.set_ylabel("Energy")
    ax3.grid(True, alpha=0.3)

    # final strength distribution
    strengths = [a.traits.strength for a in sim.world.agents.values()]
    if strengths:
        ax4.hist(strengths, bins=20, alpha=0.7, color='#ff7f0e', edgecolor='black')
    ax4.set_title("Final Strength Distribution", fontweight='bold')
    ax4.set_xlabel("Strength")
    ax4.set_ylabel("Frequency")
    ax4.grid(True, alpha=0.3)

    fig.tight_layout()
    path = os.path.join(output_dir, "summary_statistics.png")
    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    written.append(path)

    print_summary(sim)
    print(f"\nCharts saved to '{output_dir}/':")
    for p in written:
        print(f"  - {os.path.basename(p)}")
    print("========================\n")
    return written


def print_summary(sim: Sim):
    m = sim.world.metrics()
    print(f"\n=== SIMULATION SUMMARY ===")
    print(f"Ticks completed: {m['tick']}")
    print(f"Final population: {m['population']}")
    print(f"Births: {m['births']}  Deaths: {m['deaths']}  Merges: {m['merges']}")
    if m['population']:
        print(f"Average final energy: {m['avg_energy']:.1f}")
    if m['deaths']:
        print(f"Average lifespan: {m['avg_life']:.1f} ticks")
