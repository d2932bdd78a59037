from trackmap.cli import main

main()
