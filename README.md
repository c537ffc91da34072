# aquanav

Building blocks for the control stack of an underwater vehicle. The package holds the message types that the vehicle's subsystems exchange, a ZeroMQ publish/subscribe transport for them, a periodic subsystem base with several concrete subsystems, a six-degree-of-freedom vehicle model, a nonlinear model-predictive controller, and a sonar obstacle-avoidance mission.

## Installation

```
pip install .
```

To install with the test dependencies:

```
pip install ".[test]"
```

## Modules

- `aquanav.topics`: the message types `EnvironmentTopic`, `MissionTopic`, `StateTopic`, `CommandTopic`, `MotionTopic`, `SignalTopic` and `TestSonarTopic`. Each has a fixed binary layout. `to_bytes()` and `from_bytes()` convert a message to and from that layout. `update()` copies another message of the same type into this one, and `copy()` returns an independent copy. `HORIZON` (41) is the number of steps in a mission trajectory.
- `aquanav.communication`: the transport.
  - `Publisher(topic_cls)` sends messages as two frames: the topic name, then the payload. It has `bind`, `connect`, `publish` and `close`.
  - `Subscriber(data, lock)` receives messages in a background thread. It updates `data` in place while holding `lock`.
  - `CommandSubscriber(data, lock, new_event)` works the same way for `CommandTopic`, and also sets `new_event` whenever a command arrives.
  - Errors are raised as `CommunicationError`. `get_context()` returns the shared ZeroMQ context.
- `aquanav.sensors`: the enums `MissionImp` and `SensorType`, and the map settings `WIDTH`, `HEIGHT`, `SPACING_FACTOR` and `R_M`. It also has the thread-safe sensor holders `SonarData`, `CameraData` and `GPSData`. Their collectors (`start_collector` / `stop_collector`) feed simulated readings.
- `aquanav.vehicle_model`: `VehicleModel(config_path)` loads mass, inertia, added-mass, damping, buoyancy and thruster parameters from a JSON file with an `assembly_mass_properties` section. It computes `transformation_matrix`, `coriolis_matrix`, `damping_matrix`, `restoring_forces` and `dynamics` on NumPy arrays. Batches of states are accepted. `skew_symmetric(a)` builds a cross-product matrix.
- `aquanav.nlmpc`: `NonlinearMPC(config_path, horizon=40, dt=0.1)`.
  - It discretises the dynamics with RK4 and optimises the eight thruster forces with L-BFGS-B under box bounds.
  - Call `initialization()` before `solve(x0, x_ref)`.
  - `solve` returns the first command and the predicted 12 × (horizon + 1) state trajectory.
  - If the solver fails, `solve` returns a damped version of the previous solution, or zero thrust when there is none.
- `aquanav.geometry`:
  - `Path` holds grid points, a world trajectory and headings.
  - `GridMap` is the protocol that missions expect an occupancy grid to satisfy.
  - Helpers: `move_to`, `distance`, `heuristic`, `angle_between_points`, `create_path` and `draw_direction`.
- `aquanav.mission`: `Mission(name, env_map)`, a base class that runs one handler per mission state on each `step(current_state)` and returns the reference path.
- `aquanav.sonar_mission`: `SonarMission(env_map, endpoint="tcp://localhost:7778")`.
  - It subscribes to `TestSonarTopic` and marks detections on the map.
  - It then dives, turns towards the target (20, 16), follows the path the map plans, and surfaces.
  - `convert_obs_to_world` turns sonar ranges and bearings into world points.
- `aquanav.subsystem`: `Subsystem`, a worker that calls `step()` and `publish()` every `runtime` milliseconds.
  - `start()` begins the cycles and `stop()` pauses them. `shutdown()` ends the worker.
  - `init()` runs `setup()` once.
- `aquanav.environment_system`, `aquanav.motion_system`, `aquanav.control_system`: concrete subsystems.
  - `EnvironmentSystem` binds a publisher on `tcp://localhost:5560` and publishes the pose and velocity taken from the motion topic.
  - `MotionSystem(config_path="config.json")` reads the environment (5560) and mission (5561) topics. It solves the controller and publishes `MotionTopic` on `tcp://localhost:5563`.
  - `ControlSystem` subscribes to the motion (5563) and signal (5562) topics.

## Example

```python
from aquanav.topics import MissionTopic

topic = MissionTopic()
topic.set([1, 2, -1, 0, 0, 0], [0] * 6)
payload = topic.to_bytes()
same = MissionTopic.from_bytes(payload)
assert same == topic
```

## What the package does not do

- There is no command-line program.
- There is no supervising process that receives `CommandTopic` messages and starts, stops or initialises the subsystems. You create the subsystems and call `init()`, `start()`, `stop()`, `halt()` and `shutdown()` yourself.
- There is no mission subsystem, so nothing here publishes `MissionTopic` or `SignalTopic`. `MotionSystem` and `ControlSystem` only receive them if another publisher provides them on ports 5561 and 5562.
- There is no occupancy-grid or path-planner implementation. `SonarMission` needs an object that satisfies the `GridMap` protocol (`slide`, `update_single_point`, `reset_all`, `find_path`). The caller has to provide it.
- The sensor holders in `aquanav.sensors` produce simulated readings only. They do not talk to real devices.