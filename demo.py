from __future__ import annotations
import matplotlib.pyplot as plt
import numpy as np
import multiprocessing as mp
from brownianmc import (
    ArcsineConfig,
    ArcsineSimulation,
    FirstPassageSimulation,
    SimulationConfig,
    SimulationFramework,
)
from brownianmc.analytics import arcsine_density, first_passage_probability


def progress(completed: int, total: int):
    step = max(1, total // 10)
    if completed % step == 0 or completed == total:
        print(f"Progress: {completed}/{total} ({100 * completed / total:.0f}%)")


def create_first_passage_visualizations(fp_result, config):
    """Sample paths against the barrier and theory across horizons."""
    fig, axes = plt.subplots(1, 2, figsize=(15, 6))
    fig.suptitle('First-Passage Monte Carlo Analysis',
                 fontsize=16,
                 fontweight='bold')

    # 1. Retained trajectories, colored by outcome
    ax1 = axes[0]
    for sp in fp_result.sample_paths:
        ax1.plot(sp.path.times,
                 sp.path.values,
                 color='crimson' if sp.hit else 'steelblue',
                 alpha=0.7,
                 linewidth=1)
    ax1.axhline(config.barrier,
                color='black',
                linestyle='--',
                linewidth=2,
                label=f'Barrier b = {config.barrier}')
    ax1.set_xlabel('Time')
    ax1.set_ylabel('X(t)')
    ax1.set_title('Sample paths (red = reached barrier)')
    ax1.legend()
    ax1.grid(True, alpha=0.3)

    # 2. Reflection-principle curve with the simulated point and its CI
    ax2 = axes[1]
    horizons = np.linspace(config.step_size, config.horizon, 200)
    theory = [first_passage_probability(config.drift, config.volatility, config.barrier, t)
              for t in horizons]
    ax2.plot(horizons, theory, color='black', linewidth=2, label='Theory')
    ci = fp_result.stats.get('ci_mean', {})
    yerr = None
    if ci and np.isfinite(ci['low']):
        yerr = [[fp_result.empirical_probability - ci['low']],
                [ci['high'] - fp_result.empirical_probability]]
    ax2.errorbar([config.horizon],
                 [fp_result.empirical_probability],
                 yerr=yerr,
                 fmt='o',
                 color='orange',
                 capsize=6,
                 label=f'Simulated = {fp_result.empirical_probability:.4f}')
    ax2.set_xlabel('Horizon T')
    ax2.set_ylabel('P(max X ≥ b)')
    ax2.set_title('Hitting probability')
    ax2.legend()
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def create_arcsine_visualizations(arc_result, bin_count: int = 40):
    """Empirical histograms of the three statistics against the arcsine density."""
    fig, axes = plt.subplots(1, 3, figsize=(18, 5))
    fig.suptitle("Lévy's Arcsine Laws",
                 fontsize=16,
                 fontweight='bold')
    titles = {
        'occupation_fraction': 'Time above zero',
        'last_zero_fraction': 'Last zero crossing',
        'max_time_fraction': 'Time of maximum',
    }
    xs = np.linspace(0.005, 0.995, 400)
    for ax, (name, bins) in zip(axes, arc_result.histograms(bin_count).items()):
        ax.bar([b.midpoint for b in bins],
               [b.empirical_density for b in bins],
               width=1.0 / bin_count,
               alpha=0.7,
               color='skyblue',
               edgecolor='black',
               label='Simulated')
        ax.plot(xs, arcsine_density(xs), color='red', linewidth=2, label='1/(π√(x(1-x)))')
        ax.set_ylim(0, 5)
        ax.set_xlabel('Fraction of horizon')
        ax.set_ylabel('Density')
        ax.set_title(titles[name])
        ax.legend()
        ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig


def main():
    fw = SimulationFramework()
    fp_sim = FirstPassageSimulation()
    arc_sim = ArcsineSimulation()

    # Reproducible across processes
    fp_sim.set_seed(43)
    arc_sim.set_seed(43)

    fw.register_simulation(fp_sim)
    fw.register_simulation(arc_sim)

    fp_config = SimulationConfig(drift=0.05,
                                 volatility=1.0,
                                 barrier=2.0,
                                 horizon=10.0,
                                 step_size=0.01,
                                 path_count=5_000)
    arc_config = ArcsineConfig(path_count=10_000, step_size=0.001, horizon=1.0)

    print("Running First Passage…")
    fp_result = fw.run_simulation("First Passage",
                                  fp_config,
                                  progress_callback=progress)

    # Arcsine runs in the background while the first result is printed
    print("Running Arcsine Laws…")
    arc_task = fw.submit("Arcsine Laws", arc_config, progress_callback=progress)

    print("\n" + "*" * 50)
    print(fp_result.result_to_string())
    print("*" * 50 + "\n")

    arc_result = arc_task.result()
    print(arc_result.result_to_string())
    fw.shutdown()

    print("\nGenerating visualizations...")
    plt.style.use('default')
    plt.rcParams['figure.dpi'] = 100
    plt.rcParams['savefig.dpi'] = 300

    fp_fig = create_first_passage_visualizations(fp_result, fp_config)
    arc_fig = create_arcsine_visualizations(arc_result)

    plt.show()

    save_plots = input("\nSave plots to files? (y/N): ").lower().strip() == 'y'
    if save_plots:
        fp_fig.savefig('first_passage_analysis.png',
                       bbox_inches='tight',
                       dpi=300)
        arc_fig.savefig('arcsine_laws.png',
                        bbox_inches='tight',
                        dpi=300)
        print("Plots saved as PNG files!")


if __name__ == "__main__":

    try:
        mp.set_start_method("spawn", force=True)
    except RuntimeError:
        pass
    main()
