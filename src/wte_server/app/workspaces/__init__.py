"""DevWorkspace-facing logic: pod lookup, exec, kubeconfig, shell detection and idling."""
