import argparse
import logging

from lifesim.config import CFG
from lifesim.runner import SimRunner
from lifesim.sim import Sim

log = logging.getLogger("lifesim")


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Run the grid life simulation headless.")
    p.add_argument("--ticks", type=int, default=500, help="ticks to run (0 = until Ctrl-C)")
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--model", choices=["actor_critic", "qlearning", "physio"], default=CFG.MODEL)
    p.add_argument("--interval", type=float, default=CFG.TICK_INTERVAL, help="seconds between ticks")
    p.add_argument("--width", type=int, default=CFG.W)
    p.add_argument("--height", type=int, default=CFG.H)
    p.add_argument("--agents", type=int, default=CFG.N0, help="initial random agents")
    p.add_argument("--no-random-food", action="store_true")
    p.add_argument("--log-every", type=int, default=50, help="log a summary every N ticks")
    p.add_argument("--charts", action="store_true", help="save matplotlib charts at the end")
    p.add_argument("-v", "--verbose", action="store_true", help="log every simulation event")
    return p.parse_args(argv)


def run(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = CFG(W=args.width, H=args.height, SEED=args.seed, N0=args.agents,
              MODEL=args.model, TICK_INTERVAL=args.interval,
              RANDOM_FOOD=not args.no_random_food)
    sim = Sim(cfg)
    runner = SimRunner(sim, max_ticks=args.ticks or None)
    log.info("config %s", sim.config_message())

    runner.start()
    try:
        while runner.running:
            snap = sim.publisher.poll(timeout=0.5)
            if snap is None:
                continue
            if args.log_every and snap.tick % args.log_every == 0:
                m = snap.metrics
                log.info("[tick %d] pop=%d foods=%d births=%d deaths=%d merges=%d avgE=%.1f",
                         snap.tick, m["population"], m["foods"], m["births"],
                         m["deaths"], m["merges"], m["avg_energy"])
    except KeyboardInterrupt:
        log.info("Simulation stopped by user")
    finally:
        runner.stop()

    if runner.error is None:
        log.info("Simulation completed after %d ticks", runner.ticks)
    if args.charts:
        from lifesim.charts import final_charts
        final_charts(sim)
    else:
        from lifesim.charts import print_summary
        print_summary(sim)


if __name__ == "__main__":
    run()
