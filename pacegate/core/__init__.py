# Core control-plane components: state, policy, safety nets, stores
