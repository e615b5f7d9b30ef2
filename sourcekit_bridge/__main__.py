from sourcekit_bridge.cli import main

main()
