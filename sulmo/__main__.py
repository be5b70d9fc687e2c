from sulmo.app import main

main()
