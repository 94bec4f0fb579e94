from blueprint_engine.cli import main

main()
