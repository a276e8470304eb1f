# edhighway

A set of self-contained building blocks in plain Python. It has no
third-party dependencies.

| Module | What it provides |
| --- | --- |
| `edhighway.lzo` | LZO1X decoding: `decompress`, `compress_worst_size`, the `LzoResult` codes and the `LzoError` exception family |
| `edhighway.lzo_compress` | LZO1X encoding: `compress` |
| `edhighway.stringsfilecache` | `StringsFileCache`, a persistent on-disk string cache, plus `CacheIndex` and `CompressedBlob` |
| `edhighway.restclient` | `RestClient`, `Response`, `urlencode`, `encode_post_parameters`, `parse_header_line` |
| `edhighway.threadpool` | `ThreadPool`, a resizable pool of worker threads |
| `edhighway.runners` | `Runner`, `start_new_runner`, `current_thread_id`, `for_each_parallel` |
| `edhighway.atomics` | `AtomicFlag`, a thread-safe boolean |
| `edhighway.conditional_wait` | `ConfirmedPass`, a one-shot signal that a late waiter cannot miss |
| `edhighway.strutils` | string, path and stream helpers such as `trim`, `filename_stem`, `remove_duplicates_keep_order` |
| `edhighway.containers` | container helpers such as `remove_if`, `pick_random`, `findif_value_and_index`, `join` |
| `edhighway.scoped` | context managers `exec_on_exit` and `classic_locale` |

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## LZO compression

```python
from edhighway.lzo import compress_worst_size, decompress
from edhighway.lzo_compress import compress

data = b"hello hello hello hello hello"
packed = compress(data, compress_worst_size(len(data)))
assert decompress(packed, len(data)) == data
```

`compress` allows the worst-case size when `max_size` is left out. If the
stream would not fit, it raises `OutputOverrunError`. `decompress` raises
`InputOverrunError`, `OutputOverrunError`, `LookbehindOverrunError` or a plain
`LzoError` for a broken stream. Each exception carries `result`, an
`LzoResult`, and `output`, the bytes decoded before the failure. Data after
the end-of-stream marker is ignored.

## Persistent string cache

```python
import tempfile
from datetime import timedelta
from edhighway.stringsfilecache import StringsFileCache

with StringsFileCache(tempfile.mkdtemp()) as cache:
    cache.add_data("greeting", "hello", time_to_keep=timedelta(hours=1))
    assert cache.get_data("greeting") == "hello"
    cache.add_data("greeting", "")        # an empty value deletes the key
    assert cache.get_data("greeting") == ""
```

How the cache behaves:

- **Storage.** Each value is compressed into its own file and carries an
  expiry time, which defaults to 24 hours.
- **Recent reads.** Values read recently are also kept in memory, up to
  `ram_size` entries (500 by default).
- **Missing values.** `get_data` returns an empty string for keys that are
  missing, expired or corrupt, and drops those keys.
- **Empty keys.** `add_data` returns `False` only for an empty key.
- **The index file.** The index, `list.bin` in the cache directory, is
  written every tenth `add_data` and on `close()` or when the `with` block
  ends.
- **Start-up.** If the index cannot be read when the cache starts, the whole
  cache directory is deleted and the cache starts empty.
- **Removing everything.** `clean_all()` removes every entry and every file.

## REST client

```python
from edhighway.restclient import RestClient, urlencode, encode_post_parameters

urlencode("a b&c")                                  # 'a+b%26c'
encode_post_parameters({"a": "1", "b": "x y"})      # 'a=1&b=x+y'

client = RestClient()
response = client.get("http://localhost:8080/status", timeout=10)
print(response.code, response.headers, response.text)
```

### Requests

`RestClient` has the methods `get`, `post`, `patch`, `put`,
`delete_with_body`, `delete`, `options`, `custom_method` and the general
`request`.

- **Redirects.** Only `get` follows redirects.
- **Timeouts.** Timeouts are in seconds, and `0` means no limit. Connecting
  is limited to `min(20, timeout + 1)` seconds.
- **User agent.** Requests send the user agent `ed_highway` unless another
  is given.
- **Compressed bodies.** Requests ask for gzip or deflate bodies and decode
  them.
- **Certificates.** TLS certificates are not verified.
- **Local address.** `interface` or `set_interface()` binds outgoing
  connections to a local address.

### Responses

Transport failures do not raise an exception. They come back as a `Response`
in which `transport_code` is non-zero and `code` holds the same value.
`error` describes the failure.

On success:

- `code` is the HTTP status.
- `body` holds the raw bytes, and `text` gives them decoded as UTF-8.
- `headers` holds the response headers, with repeated `Set-Cookie` values
  joined by `"; "`.

## Threading helpers

```python
from edhighway.threadpool import ThreadPool
from edhighway.runners import for_each_parallel

results = []
with ThreadPool(4) as pool:
    for_each_parallel(pool, range(10), results.append)
assert sorted(results) == list(range(10))
```

`ThreadPool.push(func, can_run=None)` queues `func` and returns a
`concurrent.futures.Future`. When a worker runs `func`, it passes the
worker's index. If `can_run` returns `False`, the task goes back to the end
of the queue.

`stop(wait=True)` runs the queued tasks first. `stop()` without `wait` drops
them and cancels their futures.

`start_new_runner(func)` runs `func(stop_event)` on its own thread. The
returned `Runner.stop()` sets the event and waits for the thread to finish.

```python
import threading
from edhighway.conditional_wait import ConfirmedPass

gate = ConfirmedPass()
threading.Thread(target=gate.confirm).start()
assert gate.try_wait_confirm(1000)
```

`ConfirmedPass.wait_confirm` takes an optional stop condition, which is
checked every `period_ms` milliseconds. The condition can be a callable or
an `AtomicFlag`.

## What this package does not do

This is a library only. It has:

- no command-line program,
- no graphical interface,
- no route planning or star-system lookups.

Callers choose where the string cache lives: there is no default cache
location.

`RestClient.set_auth` only records `user:password` in the client's `auth`
attribute. The credentials are not sent with requests; add an
`Authorization` header yourself if a server needs one.