#!/usr/bin/env python3
"""Demo script for the vision position estimator.

Drives the estimator with a simulated camera moving forward at constant
speed, injects a burst of fast rotation and a quality drop, and prints
the published estimate.

Usage:
    python examples/sim_demo.py
    python examples/sim_demo.py --config config/vpe.yaml --mavlink --rerun
"""

import argparse
import logging

import numpy as np

from vpe import (
    Attitude,
    ConstantVelocityPoseProvider,
    EstimatorConfig,
    MavlinkConfig,
    MavlinkTelemetry,
    PositionEstimator,
    RecordingTelemetry,
    RerunVisualizer,
    SimClock,
    StaticAttitudeProvider,
)


def main() -> None:
    """Run the simulated estimator demo."""
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--config", help="YAML config file")
    parser.add_argument("--frames", type=int, default=300, help="Frames to simulate")
    parser.add_argument("--fps", type=float, default=30.0, help="Simulated frame rate")
    parser.add_argument("--speed", type=float, default=0.5, help="Forward speed (m/s)")
    parser.add_argument("--mavlink", action="store_true", help="Publish over MAVLink")
    parser.add_argument("--rerun", action="store_true", help="Visualize in Rerun")
    args = parser.parse_args()

    config = EstimatorConfig.from_yaml(args.config) if args.config else EstimatorConfig()
    if args.rerun:
        config.enable_detectors = True

    logging.basicConfig(
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    frame_dt = 1.0 / args.fps
    clock = SimClock()
    recorder = RecordingTelemetry()
    sink = recorder
    if args.mavlink:
        mav_config = MavlinkConfig.from_yaml(args.config) if args.config else MavlinkConfig()
        sink = MavlinkTelemetry(mav_config)

    # Camera Z is the depth axis, so forward motion is +Z in the camera frame
    provider = ConstantVelocityPoseProvider([0.0, 0.0, args.speed], frame_dt)
    attitude = StaticAttitudeProvider()
    estimator = PositionEstimator(provider, attitude, sink, config=config, clock=clock)
    if args.rerun:
        estimator.register_detector(RerunVisualizer(app_name="vpe-sim"))

    image = np.zeros((240, 320, 3), dtype=np.uint8)
    depth = np.full((240, 320), 1500, dtype=np.uint16)

    print("Simulating vision position estimator...")
    print("=" * 72)
    print(f"{'Frame':>6} {'Mode':^12} {'Outcome':^12} | {'Position':^30}")
    print("-" * 72)

    estimator.start()
    for i in range(args.frames):
        clock.advance(frame_dt)

        # Fast yaw between frames 100 and 110, low quality from frame 200
        if 100 <= i < 110:
            attitude.set(Attitude(yaw_rate=1.5))
        else:
            attitude.set(Attitude())
        if i == 200:
            provider.inlier_count = 10

        timestamp_ns = int(clock() * 1e9)
        outcome = estimator.process_frame(image, depth, timestamp_ns)

        if i % 20 == 0:
            pos = estimator.position
            pos_str = f"[{pos[0]:8.3f}, {pos[1]:8.3f}, {pos[2]:8.3f}]"
            print(
                f"{i:6d} {estimator.mode.value:^12} {outcome.value:^12} | {pos_str}"
            )
    estimator.stop()

    print()
    print("=" * 72)
    print("SUMMARY")
    print("=" * 72)
    if args.mavlink:
        print("Messages were sent over MAVLink")
    else:
        print(f"Position messages: {len(recorder.positions)}")
        print(f"Status messages:   {len(recorder.statuses)}")
        print(f"Reset warnings:    {len(recorder.logs)}")
        if recorder.statuses:
            last_valid = [s for s in recorder.statuses if s.is_valid]
            if last_valid:
                s = last_valid[-1]
                print(
                    f"Last valid status: x={s.x:.3f} y={s.y:.3f} z={s.z:.3f} "
                    f"quality={s.quality} fps={s.fps:.1f}"
                )
    print(f"Oracle resets:     {provider.num_resets}")


if __name__ == "__main__":
    main()
