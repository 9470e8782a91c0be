# main.py
"""
Main entry point for the layered DAG layout.

This script orchestrates the entire layout lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Loads the graph (a JSON file, or the built-in sample) into the engine
   and registers the default forces.
4. Runs the simulation, either interactively in a Pygame window or
   headless until convergence.
5. Optionally writes the final positions to a JSON file.
"""
import argparse
import logging
from typing import List, Optional

from utils import setup_logging, load_config, load_graph_file, save_positions


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="layered-layout",
        description="Force-directed 3D layout of layered DAGs.",
    )
    p.add_argument("--config", type=str, default="config.json", help="Path to the configuration JSON")
    p.add_argument("--graph", type=str, default=None, help="Path to a graph JSON (default: built-in sample)")
    p.add_argument("--headless", action="store_true", help="Run without a window until convergence")
    p.add_argument("--steps", type=int, default=None, help="Maximum number of steps (overrides run_control)")
    p.add_argument("--out", type=str, default=None, help="Write final positions to this JSON file")
    p.add_argument("--lenient", action="store_true", help="Drop malformed entities instead of failing")
    return p.parse_args(argv)


def _run_interactive(sim, visualizer, max_steps: Optional[int], log_throttle: int) -> None:
    """
    Steps the engine while the window is open. The window stays open after
    convergence so that the user can keep dragging nodes. A drag release or
    the R key reheats the engine, which also renews the `max_steps` budget.
    """
    step_num = 0
    while True:
        if not visualizer.paused and (max_steps is None or step_num < max_steps):
            if not sim.is_converged():
                sim.step()
                step_num += 1
                if log_throttle and step_num % log_throttle == 0:
                    logging.info(f"Simulation step {sim.get_iteration()}/{sim.config.max_iterations}")
                    logging.debug(f"Step {step_num} | Kinetic energy: {sim.kinetic_energy():.4f}")

        iteration = sim.get_iteration()
        # The visualizer's draw method returns False when the user quits.
        if not visualizer.draw(sim):
            break
        if sim.get_iteration() < iteration:
            step_num = 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    The main function to run the layout.
    """
    args = _parse_args(argv)

    # Load configuration from the JSON file first.
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"FATAL: Could not load {args.config}. Error: {e}")
        return 1

    # Set up the logging system based on the loaded configuration.
    setup_logging(config)

    logging.info("--- Layered Layout Starting ---")

    sim_params = config.get('simulation_parameters', {})
    run_params = config.get('run_control', {})
    vis_params = config.get('visualization', {})

    from config import SimulationConfig
    from errors import InvalidConfigError, MalformedGraphError
    from forces import build_default_forces
    from sample_data import generate_sample_graph
    from simulation import Simulation

    # --- Component Initialization ---
    try:
        sim_config = SimulationConfig.from_dict(sim_params)
        graph = load_graph_file(args.graph) if args.graph else generate_sample_graph()
        sim = Simulation(sim_config)
        dropped = sim.load(graph, strict=not args.lenient)
    except (InvalidConfigError, MalformedGraphError) as e:
        logging.critical(f"Startup failed: {e}")
        return 1
    for description in dropped:
        logging.warning(f"Dropped during load: {description}")

    for force in build_default_forces(sim_config, sim.store):
        sim.add_force(force)

    log_throttle = run_params.get('log_throttle_steps', 100)
    max_steps = args.steps if args.steps is not None else run_params.get('max_steps')

    if args.headless:
        steps = sim.run(max_steps=max_steps, log_throttle=log_throttle)
        snapshot = sim.snapshot()
        logging.info(
            f"Headless run finished after {steps} steps: state={snapshot.state.value}, "
            f"kinetic energy={snapshot.kinetic_energy:.4f}"
        )
    else:
        from visualization import Visualizer
        visualizer = Visualizer(
            colors=vis_params.get('layer_colors'),
            node_scale=vis_params.get('node_scale', 1.0),
        )

        _run_interactive(sim, visualizer, max_steps, log_throttle)

        visualizer.close()
        logging.info("Simulation loop finished.")

    if args.out:
        save_positions(args.out, sim)

    logging.info("--- Layered Layout Shutting Down ---")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
