# cadss

A small, tick-driven simulator of a multiprocessor memory system. Every
simulated part is a component (`cadss.types.Component`) with `tick`,
`finish` and `destroy` steps:

| Module                | Component                                                          |
|-----------------------|--------------------------------------------------------------------|
| `cadss.trace`         | `TraceReader`: feeds trace operations to each processor            |
| `cadss.processor`     | `Processor`: blocks a core on memory operations and mispredictions |
| `cadss.branch`        | `BranchPredictor`: always predicts the real next PC                |
| `cadss.cache`         | `Cache`: one outstanding request, fixed latency                    |
| `cadss.simple_cache`  | `SimpleCache`: forwards accesses to coherence and waits for data   |
| `cadss.coherence`     | `Coherence`: per-processor line states, MI protocol                |
| `cadss.interconnect`  | `Interconnect`: snooping bus with round-robin arbitration          |
| `cadss.memory`        | `Memory`: DRAM with a fixed 90-tick fetch                          |

Supporting modules: `cadss.stree` (a splay tree keyed by integers),
`cadss.config` (the settings file parser), `cadss.debug` (the interactive
debug prompt) and `cadss.engine` (wiring and the command line).

The engine builds the components, ticks the processor until no core makes
progress, and writes `Ticks - <n>`.

## Installing

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Running the simulator

```
cadss-engine -s default.config -t program.trace -n 2
```

| Option        | Meaning                                                    |
|---------------|------------------------------------------------------------|
| `-h`          | Show help                                                  |
| `-v`          | Verbose output                                             |
| `-n <num>`    | Number of processors to simulate                           |
| `-c <name>`   | Cache component: `cache` (default) or `simpleCache`        |
| `-p <name>`   | Processor component (`processor`)                          |
| `-o <name>`   | Coherence component (`coherence`)                          |
| `-i <name>`   | Interconnect component (`interconnect`)                    |
| `-b <name>`   | Branch predictor component (`branch`)                      |
| `-m <name>`   | Memory component (`memory`)                                |
| `-t <path>`   | Trace file or directory (standard input if omitted)        |
| `-s <path>`   | Settings file (`default.config` if omitted)                |
| `-d [<tick>]` | Debug prompt; with `<tick>`, only from that tick on        |

Component names are matched on their last path element, so `-c
path/to/simpleCache` selects `simpleCache`. An unknown name stops the
engine with an error message.

When `-t` names a directory, processor *n* reads `p<n>.trace` from it.
With a single file or standard input, only processor 0 gets operations.

### Settings file

The settings file gives each component its own argument list. A section
starts with `__name`; everything after it up to the next section is split
on whitespace into that component's arguments, with the name itself as the
first argument. Double quotes keep text together, and `//` and `/* ... */`
comments are skipped.

```
// sample settings
__processor -f 4 -d 2
__cache     -E 4 -s 6 -b 6
__coherence -s 0          /* 0 selects MI */
__branch    -s 10 -b 4 -g 1
```

Options the components act on: `-s <n>` for coherence (the scheme) and
`-b <bits>` for `simpleCache` (block size `2**bits`). Other options are
accepted and recorded but do not change the model.

### Trace format

One operation per line; addresses in hexadecimal, the rest in decimal:

```
A 4004a0 1, 2, 3     ALU op: PC, destination, two sources
X 4004a4 1, 2, 3     long-latency ALU op
B 4004a8 4004c0 5    branch: PC, next PC, optional source register
L 7ffe10,8 2         load: address, size, optional source register
S 7ffe18,8 3         store: address, size, optional destination register
```

A processor's trace ends at end of file or at a line that starts with
whitespace. A line with an unknown letter or bad fields gives a warning
and also ends that processor's trace.

### Debug prompt

With `-d`, the engine stops before ticks and reads commands:

```
w [pbcoim]+   watch components      i [pbcoim]+   stop watching
n [T]         advance T ticks       c             continue to a state change
l             list watched          e             leave the prompt
q             stop the simulation   h             help
```

The letters stand for processor, branch, cache, coherence, interconnect
and memory. End of input at the prompt leaves the debugger. When the
process is being traced by an external debugger, the prompt is skipped and
interconnect state changes raise `SIGTRAP` instead.

## Using the pieces directly

The components are ordinary Python objects and can be used on their own.

```python
from cadss.stree import SplayTree
from cadss.config import parse_settings
from cadss.trace import parse_op

tree = SplayTree(update_existing=True)
tree.insert(0x40, "line")
assert tree.find(0x40) == "line"

settings = parse_settings("__cache -E 4 -s 6")
print(settings.get("cache"))   # ['cache', '-E', '4', '-s', '6']

op = parse_op("L 7ffe10,8 2")
print(op.op, hex(op.mem_address), op.size)
```

`cadss.engine.run_simulation(options, settings, read_line, out)` runs a
full simulation from `EngineOptions` (see `parse_args`) and `Settings`
(see `open_settings`), returning the number of ticks.

## What it does not do

- Only plain text traces are read; compressed binary task-graph traces are
  not supported.
- Components are the built-in classes listed above; there is no loading of
  external component implementations.
- Only the MI coherence scheme works. Selecting MSI, MESI, MOESI or MESIF
  with `-s` is accepted, but coherence requests then raise `ValueError`.
- The branch predictor is perfect and the caches keep no contents of their
  own, so there are no predictor tables, hit rates or replacement policies.