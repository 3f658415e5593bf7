# cdnkit

Building blocks for a small content delivery network:

- **Cache storage** (`cdnkit.storage`): stores content and its HTTP headers on
  disk, and answers reads, writes and invalidations. A background evictor
  removes the content with the least remaining cache lifetime when the disk
  fills up.
- **Configuration server** (`cdnkit.server`): a REST API built with Flask that
  manages delivery services and cache nodes. It saves them as JSON files and
  tracks invalidation requests.
- **Static test server** (`cdnkit.static_server`): serves static files and
  returns responses with chosen status codes and cache headers, for
  exercising a cache.
- **Fetch client** (`cdnkit.test_client`): fetches a URL and writes the body to
  standard output.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration server

```
cdnkit-config-server --apiport 8080 --dir ./config --uidir ./ui
```

Options (each also accepted with a single dash):

- `--apiport`: port to listen on (default 8080).
- `--dir`: directory for the configuration files (default `.`).
- `--uidir`: directory whose files are served under `/ui`.

Delivery services are kept in `deliveryServices.json` and cache nodes in
`cacheNodes.json`, both inside `--dir`; both files are loaded again at start-up.
Every change bumps the list's version number and saves the file in the
background.

| Method | Path                        | Purpose                                  |
|--------|-----------------------------|------------------------------------------|
| GET    | `/ds`                       | version and names of delivery services   |
| POST   | `/ds`                       | add a delivery service                   |
| GET    | `/ds/<name>`                | one delivery service                     |
| PUT    | `/ds/<name>`                | replace a delivery service               |
| DELETE | `/ds/<name>`                | remove a delivery service                |
| GET    | `/cn`                       | version and names of cache nodes         |
| POST   | `/cn`                       | add a cache node                         |
| GET    | `/cn/<name>`                | one cache node                           |
| PUT    | `/cn/<name>`                | replace a cache node                     |
| DELETE | `/cn/<name>`                | remove a cache node                      |
| GET    | `/invalidate/<pattern>`     | start an invalidation, returns its ID    |
| GET    | `/invalidateStatus/<uid>`   | status of an invalidation                |

A delivery service looks like this:

```json
{
  "name": "service1",
  "clientURL": "http://client1.example.com",
  "originURL": "http://origin1.example.com",
  "rewriteRules": [{"headerName": "Host", "operation": 1, "value": "example.com"}]
}
```

A rewrite rule's operation is 0 (add), 1 (overwrite) or 2 (delete)
(`cdnkit.config.HeaderRewriteOp`). A cache node needs `name`, `ip`, `port` and
`type`; `parentIP`, `parentPort`, `mgmtPort` and `promPort` are optional.

From Python, `cdnkit.server.main.build_app(directory, ui_dir)` returns the
whole application. To assemble it yourself:

```python
from cdnkit.server.in_memory_config import InMemoryConfig
from cdnkit.server.config_saver import ConfigSaver
from cdnkit.server.cache_commander import CacheCommander
from cdnkit.server.api_server import create_app

config = InMemoryConfig()
saver = ConfigSaver(config, "./config")
commander = CacheCommander(config, invalidate_node, saver=saver)
app = create_app(config, saver, commander, on_ds_change, on_cn_change)
```

`invalidate_node(node, pattern, uid, timeout)` contacts one cache node and
returns an object with `success` and `message`. `on_ds_change()` and
`on_cn_change(name)` are called after each change and may push the new
configuration to the nodes. `cdnkit.server.ui_server.register_ui(app, directory)`
adds the `/ui` routes.

## Cache storage

```python
from cdnkit.storage.handler import open_storage
from cdnkit.storage.common import Headers, StorageError, StorageRequest

storage = open_storage("./cdn", None)
headers = Headers({"Cache-Control": "max-age=3600", "Content-Length": "5"})
with open("payload.bin", "rb") as body:
    storage.do(StorageRequest("POST", "http://example.com/item", headers=headers, body=body))
with storage.do(StorageRequest("GET", "http://example.com/item")) as response:
    data = response.body.read()
storage.close()
```

- `POST` stores a body with its headers and returns status `201`. Missing
  `Cache-Control`, `Age` and `Last-Modified` headers are filled in.
- `GET` returns the stored headers and an open file as the body; `HEAD`
  returns only the headers. `Age` is brought up to date on every read.
- `DELETE` removes the content's directory. Without an exact match it removes
  every directory next to it whose path contains the last part of the URL path.

Failures raise `StorageError`, whose `status_code` is 400 (no body, no
request), 404 (not stored), 405 (other methods), 500 or 507 (disk full).

The evictor checks disk usage every 30 seconds; above 80 % it deletes up to
four of the stalest items. To test it, create a file named `SimulateDiskFull`
in the cache directory: the next check reports a full disk.

## Static test server

```
cdnkit-static-server --static-dir ./static --port 32001 --port 32002
```

Without `--port` it listens on 32001 and 32002. Files of `--static-dir` are
served under `/static`. Paths of the form
`/dyna/<status>/<length>/<max-age>/<age>` return the given status code, a body
of `length` `=` characters, and matching `Cache-Control` and `Age` headers.
Every part after `/dyna` is optional; a missing status means 200. Only GET is
answered.

## Fetch client

```
cdnkit-fetch [URL]
```

Fetches the URL (by default `https://en.wikipedia.com`) twice, printing the URL
before each body. Errors go to standard error.

## What it does not do

- No management client for cache nodes ships with the package. The
  configuration server started by `cdnkit-config-server` does not push
  configuration changes to cache nodes, and its invalidation requests fail on
  every node (the request is still reported as `Completed`). Supply your own
  `invalidate_node`, `on_ds_change` and `on_cn_change` to `create_app` and
  `CacheCommander` for that.
- There is no caching proxy that serves clients; `cdnkit.storage` is the
  storage layer such a proxy would use.
- No UI or static files are included; pass `--uidir` and `--static-dir`,
  otherwise those paths answer 404.