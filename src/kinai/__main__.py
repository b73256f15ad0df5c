from kinai.cli import main

main()
