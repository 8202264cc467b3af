"""
Operator interfaces for Modwatch.

- **console.py**: prompt_toolkit console for starting and stopping the monitor,
  forcing analysis, rating past actions, injecting chat and inspecting state.
  Uses non-blocking prompts so log output and the running monitor keep going
  while the operator types.
"""
