from component_harvester.cli.main import main

main()
