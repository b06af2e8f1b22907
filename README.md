# fortiprobe

A Prometheus exporter for FortiGate firewalls. It queries the FortiOS REST
API with a bearer API token and turns the answers into Prometheus metrics
in the text exposition format.

## Installation

```
pip install .
```

For running the tests:

```
pip install .[test]
pytest
```

## Authentication file

The exporter reads a YAML file that maps each target URL to the API token
used for it, plus optional probe include/exclude lists:

```yaml
"https://fortigate.example.com":
  token: token
  probes:
    include: []
    exclude: []
```

The `target` passed to `/probe` must match a key of this file exactly.
Only `https` targets are accepted for token authentication; an entry
without a token is rejected.

Probe names usable in `include` and `exclude`:

- `BGP/NeighborPaths/IPv4`, `BGP/NeighborPaths/IPv6`
- `BGP/Neighbors/IPv4`, `BGP/Neighbors/IPv6`
- `Firewall/IpPool`, `Firewall/LoadBalance`, `Firewall/Policies`
- `License/Status`
- `Log/DiskUsage`, `Log/Fortianalyzer/Status`, `Log/Fortianalyzer/Queue`

An empty `include` list means all probes; names in `exclude` are skipped.

## Running

```
fortiprobe --auth-file fortigate-key.yaml --listen :9710
```

Each option may also be written with a single dash (`-listen :9710`).

| Option              | Default              | Meaning                                                            |
|---------------------|----------------------|--------------------------------------------------------------------|
| `--auth-file`       | `fortigate-key.yaml` | authentication map for targets                                     |
| `--listen`          | `:9710`              | address to listen on (`host:port`, IPv6 hosts in brackets)         |
| `--scrape-timeout`  | `30`                 | read timeout in seconds for requests to a device                   |
| `--https-timeout`   | `10`                 | connect timeout in seconds for requests to a device                |
| `--insecure`        | off                  | accept untrusted certificates                                      |
| `--extra-ca-certs`  | empty                | comma-separated PEM files to trust in addition to the system store |
| `--max-bgp-paths`   | `10000`              | how many BGP paths to request; `0` turns the path probes off       |
| `--max-vpn-users`   | `0`                  | accepted and stored in the configuration, not used by any probe    |

The command exits with status 1 when the authentication file or a CA file
cannot be read or parsed, or when the server cannot be started.

## Endpoints

- `/metrics` reports the exporter's own build information as
  `fortigate_exporter_build_info{version,revision,pythonversion} 1`.
- `/probe?target=https://fortigate.example.com` probes one device and
  reports its metrics together with `probe_success` and
  `probe_duration_seconds`. A missing target or a target without
  registered authentication is answered with status 400.

Before probing, the device's FortiOS version is read from the license
status endpoint; probes whose endpoints need a newer version (BGP from 7.0,
load balancing from 6.4) then return no metrics. A probe that fails sets
`probe_success` to 0, while the other probes still report.

## Metrics

- BGP neighbours and path counts (`fortigate_bgp_neighbor_*`)
- firewall policy counters (`fortigate_policy_*`)
- IP pool usage (`fortigate_ippool_*`)
- load balancer state (`fortigate_lb_*`)
- license and log storage state (`fortigate_license_*`, `fortigate_log_*`)

## Library use

The probes work on any client object with a `get(path, query)` method that
returns decoded JSON, which makes them easy to feed with recorded data. Each
returns a list of `Metric` objects and raises `ProbeError` on failure;
`render` turns metrics into Prometheus text with families and samples sorted.

```python
from fortiprobe.metrics import TargetMetadata, render
from fortiprobe.logging_probes import probe_license_status

metrics = probe_license_status(client, TargetMetadata(7, 0))
print(render(metrics))
```

Modules:

- `fortiprobe.config`: `load_config`, `parse_auth_keys`, `ExporterConfig`
- `fortiprobe.client`: `FortiTokenClient`, `new_forti_client`, `make_ssl_context`
- `fortiprobe.metrics`: `Desc`, `Metric`, `ValueType`, `TargetMetadata`, `render`, `format_value`
- `fortiprobe.bgp`, `fortiprobe.firewall`, `fortiprobe.logging_probes`: the probes
- `fortiprobe.version`: `parse_version`
- `fortiprobe.app`: `make_server`, `main`

## What it does not do

- Only the probes listed above exist; there are no probes for system
  status, interfaces, HA, VPN users, Wi-Fi or other device areas.
- Only API-token authentication is supported.
- The exporter's own HTTP listener serves plain HTTP, without TLS or
  authentication.