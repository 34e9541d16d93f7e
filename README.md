# ckb_capsule

A command-line tool for working on CKB smart contract projects. It builds
contracts inside a Docker build image, runs the project's tests there, cleans
build outputs, and starts a GDB debugging session against `ckb-debugger`. As a
library it also reads and writes CKB addresses and capacities, parses
`capsule.toml` and `deployment.toml`, and renders deployment plans.

## Requirements

- Python 3.11 or later
- Docker, used for building, testing and debugging
  (default image `thewawar/ckb-capsule:2022-08-01`)
- `ckb-cli` 0.34.0 or later, checked by `capsule check` and used by the
  `Collector` class

## Installation

```
pip install .
```

This installs the `capsule` command.

## Usage

All commands except `check` run in a project directory, one that holds a
`capsule.toml`. The `version` in that file must share its major and minor
number with the tool's own version (`capsule --version`).

Check that Docker and `ckb-cli` are present:

```
capsule check
```

Build contracts. Without `--name`, every contract in `capsule.toml` is built;
debug mode is the default. Binaries are copied to `build/debug` or
`build/release`. Anything after `--` is appended to the `cargo build` command
of Rust contracts:

```
capsule build
capsule build --name my-contract --release
capsule build --release --debug-output
capsule build --host --rustup-dir ~/.rustup
capsule build -- --features extra
```

`--host` runs the container with host networking; `--rustup-dir` mounts an
existing directory at `/root/.rustup` in the container.

Run the tests (`cargo test -p tests` in the build image, with
`CAPSULE_TEST_ENV` set to `debug` or `release`):

```
capsule test
capsule test --release
```

Run a command in a contract's build environment, or clean build outputs:

```
capsule run --name my-contract 'echo list contract dir: && ls'
capsule clean
capsule clean --name my-contract
```

Debug a contract with a transaction template. Marks of the form
`{{contract.data}}` and `{{contract.code_hash}}` in the template are replaced
with the hex of the built binary and its blake2b hash; the patched file is
written to `.tmp/` in the project:

```
capsule debugger start --template-file tx.json --name my-contract \
    --script-group-type lock --cell-index 0 --cell-type input
```

`--listen` sets the GDB server port (default 8000), `--max-cycles` the cycle
limit (default 70000000), `--release` debugs the release binary, and
`--only-server` starts the server without the GDB client.

A file of environment variables can be passed to every Docker container with
the global `--env-file` option, given before the command:

```
capsule --env-file vars.env build
```

On failure the command prints `error: ...` and exits with a non-zero status.

## Project layout

`capsule.toml` holds the project `version`, its `[[contracts]]` (each with a
`name` and a `template_type` of `Rust`, `C` or `CSharedLib`), the path of its
`deployment` file, and an optional `[rust]` table with `workspace_dir`
(`"."` or `"contracts"`), `toolchain` and `docker_image`. Rust contracts live
under `contracts/<name>`, C contracts under `contracts/c` and are built through
its `Makefile`. Built binaries go to `build/debug` and `build/release`.

## Library use

```python
from ckb_capsule.address import Address
from ckb_capsule.human_capacity import HumanCapacity
from ckb_capsule.project_context import BuildEnv, Context

capacity = HumanCapacity.parse("61.5")
print(int(capacity), format(capacity, "#"))   # 6150000000 61.5 (CKB)

context = Context.load_from_path("my-project")
print(context.contracts_build_path(BuildEnv.RELEASE))
deployment = context.load_deployment()
```

Other modules:

- `ckb_capsule.address`: `Address.parse`, `Address.display_with_network`,
  `AddressPayload`, and the `bech32_encode`/`bech32_decode` helpers
- `ckb_capsule.recipe_plan`: `DeploymentRecipe` with JSON round trips, and
  `Plan.create(...).to_yaml()` for a readable deployment plan
- `ckb_capsule.rpc`: `RpcClient`, a JSON-RPC client for a CKB node
- `ckb_capsule.collector`: `Collector`, which gathers spendable live cells of
  an address through `ckb-cli`
- `ckb_capsule.debugger`: `patch_template` and `start_debugger`
- `ckb_capsule.recipes`: `get_recipe` and the Rust and C build recipes

## What it does not do

- It does not create projects or contracts: there is no `new` or
  `new-contract` command, and no project or contract templates.
- It does not generate transaction debugging templates; `debugger start` needs
  one written by hand.
- It does not deploy. There is no `deploy` command and no wallet: transactions
  are not built, signed or sent, and no migration records are written. The
  recipe, plan, RPC and cell-collection pieces are available as a library only.

## Tests

```
pip install .[test]
pytest
```