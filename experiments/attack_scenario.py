"""Single attack scenario on a small distribution grid.

This module builds a grid of a few areas, lets malware spread through the PV
inverters and switches on an attacker that over-reports consumption while
throttling generation for a few days. The per-step grid summary and all
boundary events are written to the results directory.

Example
-------
To run the scenario:

    $ python attack_scenario.py

This generates attack_scenario.csv with one row per step and
attack_scenario_events.csv with the frequency and voltage events.
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import pandas as pd

# Project path configuration
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
RESULTS_DIR = PROJECT_ROOT / "results"

sys.path.insert(0, str(PROJECT_ROOT))

from gridattack.core.output import GridInformationRecorder, LoggingOutput
from gridattack.core.parameters import AttackParameters, GridParameters, ModelParameters
from gridattack.core.simulator import RunResult, build_model
from gridattack.core.types import Steps, Watt
from gridattack.methods.attack import AttackBehaviour

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Scenario configuration
SEED = 2010
DAYS = 7
MAX_WORKERS = 4
STEPS_PER_DAY = Steps.steps_per_day().value


class RecordingLogOutput(GridInformationRecorder):
    """Keep the run in memory and log every event as it happens."""

    def __init__(self):
        super().__init__()
        self.log_output = LoggingOutput(logger)

    def on_warning(self, warning) -> None:
        super().on_warning(warning)
        self.log_output.on_warning(warning)


def scenario_parameters(seed: int = SEED, days: int = DAYS) -> ModelParameters:
    """Build the parameter bundle of the scenario.

    Parameters
    ----------
    seed : int
        Seed of the run.
    days : int
        Number of simulated days.

    Returns
    -------
    ModelParameters
        Parameters with an attack during days two to four.
    """
    grid = GridParameters(
        n_areas=3,
        ns_per_a=(4, 8),
        hs_per_ns=(20, 40),
        energy_storage=Watt(200_000),
        max_gen_inc_tick=Watt(5_000),
        pv_adoption=0.4,
        household_power_consumption_distribution=(Watt(1_000), Watt(250)),
        percentage_noise_on_power=0.1,
        num_noise_functions=3,
        percentage_generation_of_usage=0.3,
        bulk_consumption=Watt(1_000_000),
        volt_modifier=0.5
    )
    attack = AttackParameters(
        percentage_vuln_devices=0.6,
        infection_rate_per_step=0.01,
        patch_rate_per_step=0.002,
        attack_behaviour=[
            AttackBehaviour(
                begin=Steps(STEPS_PER_DAY),
                end=Steps(4 * STEPS_PER_DAY - 1),
                report_modifier=1.5,
                generation_modifier=0.2
            ),
        ],
        infection_window=(Steps(0), Steps(3 * STEPS_PER_DAY)),
        patch_window=(Steps(2 * STEPS_PER_DAY), Steps(days * STEPS_PER_DAY))
    )
    return ModelParameters(
        grid=grid,
        attack=attack,
        name="attack_scenario",
        steps=Steps(days * STEPS_PER_DAY),
        seed=seed,
        stop_on_freq_error=False,
        enable_output=False,
        track_history=True,
        max_workers=MAX_WORKERS
    )


async def run_scenario(params: ModelParameters) -> Optional[pd.DataFrame]:
    """Run the scenario and save its outputs.

    Parameters
    ----------
    params : ModelParameters
        The scenario parameters.

    Returns
    -------
    DataFrame or None
        Per-step summary, None if the run produced no steps.
    """
    model = build_model(params)
    output = RecordingLogOutput()
    result: RunResult = await model.run(params.steps, output)

    if result.stopped_early:
        logger.warning(f"Run stopped at step {result.stop_step}: {result.reason}")

    df = output.to_frame()
    if df.empty:
        return None

    RESULTS_DIR.mkdir(exist_ok=True)
    summary_path = RESULTS_DIR / "attack_scenario.csv"
    events_path = RESULTS_DIR / "attack_scenario_events.csv"
    df.to_csv(summary_path)
    output.warnings_frame().to_csv(events_path, index=False)
    logger.info(f"Saved {len(df)} steps to {summary_path}")
    logger.info(f"Saved {len(output.warnings)} events to {events_path}")
    return df


def analyze_results(df: pd.DataFrame) -> None:
    """Print a per-day summary of the run.

    Parameters
    ----------
    df : DataFrame
        Per-step summary.
    """
    print("\n" + "=" * 70)
    print("SUMMARY ANALYSIS")
    print("=" * 70)

    days = df.groupby(df.index // STEPS_PER_DAY)
    for day, day_data in days:
        print(f"\nDay {day}:")
        print(f"  Infected (final):    {day_data['perc_infected'].iloc[-1]:.1f}%")
        print(f"  Patched (final):     {day_data['perc_patched'].iloc[-1]:.1f}%")
        print(f"  Frequency min/max:   {day_data['frequency'].min()} / {day_data['frequency'].max()} mHz")
        print(f"  Mean power error:    {day_data['power_error'].mean():.0f} W")


def main():
    """Execute the attack scenario."""
    print("=" * 70)
    print("GRID ATTACK SCENARIO")
    print("=" * 70)

    start_time = time.time()

    try:
        df = asyncio.run(run_scenario(scenario_parameters()))

        if df is not None:
            analyze_results(df)

        elapsed = time.time() - start_time
        print(f"\nExecution time: {elapsed:.1f} seconds")
        print("Scenario complete.\n")

    except KeyboardInterrupt:
        print("\n\nScenario interrupted by user")


if __name__ == "__main__":
    main()
