# labkit

A toolkit for building and testing small distributed systems in Python.

It contains:

- `labkit.labrpc` – an in-process simulated network. Create a `Network`,
  register `Server` objects holding `Service` instances, make `ClientEnd`
  endpoints with `Network.make_end` and send calls with `ClientEnd.call`.
  A handler method takes the decoded arguments and returns the reply;
  `ClientEnd.call` raises `RpcError` when no reply arrives. The network can
  be made unreliable (`Network.reliable(False)`), can delay replies
  (`Network.long_reordering(True)`), and can disconnect endpoints
  (`Network.enable`) or delete servers (`Network.delete_server`), so failure
  handling can be tested without real sockets. `Network.get_count`,
  `get_total_count` and `get_total_bytes` report traffic.
- `labkit.labgob` – an encoder/decoder pair (`LabEncoder`, `LabDecoder`)
  that frames values as length-prefixed JSON. Dataclasses and enums survive a
  round trip once known (`register`, `register_name`); the checks warn about
  private dataclass fields, which are never transmitted, and about decoding
  into a target that already holds non-default values. `error_count()`
  reports how many warnings have been raised.
- `labkit.porcupine` – a linearizability checker. Describe a system with a
  `Model` (in `labkit.porcupine.model`), record a history of `Operation` or
  `Event` values and call `check_operations` / `check_events` (or their
  `_timeout` and `_verbose` variants, in `labkit.porcupine.checker`) to get a
  result; the timeout variants return a `CheckResult`, which is `UNKNOWN`
  when the check timed out.
- `labkit.models` – a ready-made key/value model (`KvInput`, `KvOutput`,
  `kv_step`, `kv_partition`, `KV_MODEL`, ...) for use with the checker.
- `labkit.kvraft.client` – the client side of a replicated key/value
  service: a `Clerk` with `get`, `put` and `append` that retries across its
  `ClientEnd`s until one of them answers as leader.
- `labkit.mr` – a MapReduce framework: a `Coordinator` that hands out map
  and reduce tasks over a UNIX-domain socket, and a `worker` function that
  fetches and runs them.
- `labkit.mrapps` – sample MapReduce applications, each a module with
  `mapf` and `reducef`: word count (`wc`), an inverted index (`indexer`),
  and applications used to test fault tolerance (`crash`, `nocrash`,
  `early_exit`, `jobcount`).

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running MapReduce

Start a coordinator with the input files. It uses 10 reduce tasks and
listens on a per-user socket under `/var/tmp`:

```
labkit-mrcoordinator input1.txt input2.txt
```

Then run one or more workers from Python, in the directory where the output
should go, with the application to use:

```python
from labkit.mr.worker import worker
from labkit.mrapps import wc

worker(wc.mapf, wc.reducef)
```

Map tasks write intermediate files named `mr-tmp-<task>-<bucket>`; each reduce
task writes its output to an `mr-out-<task id>` file. The coordinator exits
once every map and reduce task has completed; workers return when the
coordinator has no more work to give them. A task that runs for more than ten
seconds is handed out again.

## Checking linearizability

```python
from labkit.models import GET, PUT, KV_MODEL, KvInput, KvOutput
from labkit.porcupine.checker import check_operations
from labkit.porcupine.model import Operation

history = [
    Operation(input=KvInput(op=PUT, key="x", value="a"), call=0,
              output=KvOutput(), ret=10, client_id=0),
    Operation(input=KvInput(op=GET, key="x"), call=20,
              output=KvOutput(value="a"), ret=30, client_id=1),
]
assert check_operations(KV_MODEL, history)
```

## What the package does not do

- There is no command to start a MapReduce worker and no sequential
  single-process MapReduce runner; workers are started from Python with
  `labkit.mr.worker.worker`, as shown above.
- There is no key/value server and no consensus implementation. The `Clerk`
  talks to whatever handlers are registered behind its `ClientEnd`s under the
  names `KVServer.Get` and `KVServer.PutAppend`; providing them is up to you.
- The checker produces no visual report of a history; `check_*_verbose`
  returns the partial linearizations as data in a `LinearizationInfo`.